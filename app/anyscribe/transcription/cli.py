"""
Invocation contract for the external ``transcribe-anything`` tool.

Builds the argument vector for a job and probes (or installs) the tool
at startup.
"""

import asyncio
import logging
import sys
from typing import List, Optional, Sequence

from configs.config import get_config
from anyscribe.transcription.models import TranscriptionSettings

logger = logging.getLogger(__name__)
cfg = get_config()

REDACTED = "***"
_SECRET_FLAGS = frozenset({"--hf_token"})


class TranscriberUnavailableError(RuntimeError):
    """The external tool is missing and could not be installed."""


def build_command(
    source: str,
    output_dir: str,
    settings: TranscriptionSettings,
    command: Optional[Sequence[str]] = None,
) -> List[str]:
    """
    Translate job settings into the tool's argument vector.

    Optional flags are only emitted when the setting deviates from its
    default or is present.
    """
    args = list(command or cfg.TRANSCRIBER_COMMAND)
    args += [
        source,
        "--output_dir", output_dir,
        "--model", settings.model,
        "--task", settings.task,
    ]

    if settings.language != "auto":
        args += ["--language", settings.language]

    if settings.device != "auto":
        args += ["--device", settings.device]

    if settings.initial_prompt:
        args += ["--initial_prompt", settings.initial_prompt]

    if settings.batch_size:
        args += ["--batch-size", str(settings.batch_size)]

    if settings.hugging_face_token:
        args += ["--hf_token", settings.hugging_face_token]

    return args


def redact_command(args: Sequence[str]) -> List[str]:
    """Return a copy of ``args`` that is safe to log."""
    redacted = list(args)
    for index, arg in enumerate(redacted[:-1]):
        if arg in _SECRET_FLAGS:
            redacted[index + 1] = REDACTED
    return redacted


# ── Preflight ────────────────────────────────────────────────────────────


async def probe_transcriber(command: Optional[Sequence[str]] = None) -> bool:
    """Return True when ``<tool> --help`` exits cleanly."""
    args = list(command or cfg.TRANSCRIBER_COMMAND) + ["--help"]
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        logger.debug("Transcriber probe failed to spawn: %s", exc)
        return False
    return await proc.wait() == 0


async def install_transcriber(package: Optional[str] = None) -> bool:
    """Install the tool into the running interpreter with pip."""
    package = package or cfg.TRANSCRIBER_PACKAGE
    logger.info("Installing %s...", package)
    proc = await asyncio.create_subprocess_exec(
        sys.executable, "-m", "pip", "install", package,
    )
    code = await proc.wait()
    if code == 0:
        logger.info("%s installed successfully", package)
        return True
    logger.error("pip install %s exited with code %d", package, code)
    return False


async def ensure_transcriber(
    command: Optional[Sequence[str]] = None,
    auto_install: Optional[bool] = None,
) -> None:
    """
    Make sure the external tool can be run.

    Raises:
        TranscriberUnavailableError: the tool is absent and self-heal
            (pip install) is disabled or did not help.
    """
    if auto_install is None:
        auto_install = cfg.TRANSCRIBER_AUTO_INSTALL

    if await probe_transcriber(command):
        logger.info("Transcriber found: %s", " ".join(command or cfg.TRANSCRIBER_COMMAND))
        return

    logger.warning("Transcriber not found on PATH")
    if auto_install and await install_transcriber() and await probe_transcriber(command):
        return

    raise TranscriberUnavailableError(
        "transcribe-anything is not available. "
        f"Install it manually: pip install {cfg.TRANSCRIBER_PACKAGE}"
    )
