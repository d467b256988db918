"""
Development / local environment configuration overrides.

Only values that DIFFER from production need to be declared here.
The base config.py merges these on top of the production defaults.
"""

# FastAPI docs are enabled in development
DOCS_ENABLED = True

# The Vite dev server runs the client on a separate port
CORS_ORIGINS = [
    "http://localhost:3001",
    "http://localhost:5173",
    "http://127.0.0.1:3001",
    "http://127.0.0.1:5173",
]

ALLOWED_HOSTS = [
    "localhost",
    "127.0.0.1",
]

# Never pip-install into a developer's environment behind their back
TRANSCRIBER_AUTO_INSTALL = False
