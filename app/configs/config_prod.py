"""
Production environment configuration.

These are the baseline defaults. Local overrides live in config_local.py.
"""

import os

# FastAPI docs are disabled in production
DOCS_ENABLED = False

CORS_ORIGINS = [
    origin
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3001").split(",")
    if origin
]

ALLOWED_HOSTS = [
    host
    for host in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
    if host
]
