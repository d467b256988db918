"""
Collect a finished job's artifacts from its output directory.

The tool writes a fixed set of well-known files. Each one is read on its
own: a missing or unreadable file leaves its field empty, and only a
directory with nothing readable at all counts as a failure.
"""

import json
import logging
import os
from typing import Any, Optional

from anyscribe.transcription.models import ResultBundle, ResultStats

logger = logging.getLogger(__name__)

TEXT_FILE = "out.txt"
SRT_FILE = "out.srt"
VTT_FILE = "out.vtt"
JSON_FILE = "out.json"
SPEAKER_FILE = "speaker.json"

_MISSING = object()


class ResultsUnavailableError(RuntimeError):
    """None of the expected artifacts could be read."""


def _read_text(path: str):
    if not os.path.isfile(path):
        return _MISSING
    try:
        with open(path, "r", encoding="utf-8", newline="") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return _MISSING


def _read_json(path: str):
    content = _read_text(path)
    if content is _MISSING:
        return _MISSING
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid JSON in %s: %s", path, exc)
        return _MISSING


def read_results(output_dir: str) -> ResultBundle:
    """
    Assemble the result bundle for ``output_dir``.

    Raises:
        ResultsUnavailableError: when no artifact at all was readable.
    """
    text = _read_text(os.path.join(output_dir, TEXT_FILE))
    srt = _read_text(os.path.join(output_dir, SRT_FILE))
    vtt = _read_text(os.path.join(output_dir, VTT_FILE))
    json_data = _read_json(os.path.join(output_dir, JSON_FILE))
    speakers = _read_json(os.path.join(output_dir, SPEAKER_FILE))

    found = [v for v in (text, srt, vtt, json_data, speakers) if v is not _MISSING]
    if not found:
        raise ResultsUnavailableError(f"No readable output in {output_dir}")

    def _or(value: Any, default: Optional[Any]):
        return default if value is _MISSING else value

    return ResultBundle(
        text=_or(text, ""),
        srt=_or(srt, ""),
        vtt=_or(vtt, ""),
        json_data=_or(json_data, None),
        speakers=_or(speakers, None),
        output_dir=output_dir,
    )


def count_cues(srt: str) -> int:
    """Number of SubRip blocks (blank-line separated)."""
    blocks = srt.replace("\r\n", "\n").strip().split("\n\n")
    return sum(1 for block in blocks if block.strip())


def bundle_stats(bundle: ResultBundle) -> ResultStats:
    """Display statistics derived purely from ``bundle``."""
    speakers = bundle.speakers
    return ResultStats(
        words=len(bundle.text.split()),
        characters=len(bundle.text),
        cues=count_cues(bundle.srt),
        speakers=len(speakers) if isinstance(speakers, (list, dict)) else None,
    )
