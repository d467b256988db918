import os
import sys
import tempfile
import textwrap
from pathlib import Path

import pytest

# Ensure app/ is on sys.path so `import main`, `import anyscribe...` work in tests
ROOT = Path(__file__).resolve().parents[1]
APP_DIR = ROOT / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

_SCRATCH = tempfile.mkdtemp(prefix="anyscribe-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(_SCRATCH, "uploads"))
os.environ.setdefault("OUTPUT_ROOT", os.path.join(_SCRATCH, "outputs"))
os.environ.setdefault("PREFLIGHT_ENABLED", "0")
os.environ.setdefault("TRANSCRIBER_AUTO_INSTALL", "0")
# TestClient's websocket_connect always sends Host: testserver
os.environ["ENVIRONMENT"] = "production"
os.environ["ALLOWED_HOSTS"] = "localhost,127.0.0.1,testserver"


FAKE_TOOL = textwrap.dedent(
    """
    import json
    import os
    import sys
    import time

    args = sys.argv[1:]
    if "--help" in args:
        sys.exit(0)
    out = args[args.index("--output_dir") + 1]
    with open(os.path.join(out, "args.json"), "w") as handle:
        json.dump(args, handle)

    print("loading model", flush=True)
    print("some warning", file=sys.stderr, flush=True)
    time.sleep({delay})

    files = {files!r}
    for name, content in files.items():
        with open(os.path.join(out, name), "w", encoding="utf-8") as handle:
            handle.write(content)
    sys.exit({exit_code})
    """
)

SAMPLE_TEXT = "Hello world. This is a test transcript."
SAMPLE_SRT = (
    "1\n00:00:00,000 --> 00:00:02,000\nHello world.\n\n"
    "2\n00:00:02,000 --> 00:00:04,000\nThis is a test transcript.\n"
)
SAMPLE_VTT = "WEBVTT\n\n00:00.000 --> 00:02.000\nHello world.\n"
SAMPLE_JSON = '{"segments": [{"start": 0.0, "end": 2.0, "text": "Hello world."}]}'

SAMPLE_FILES = {
    "out.txt": SAMPLE_TEXT,
    "out.srt": SAMPLE_SRT,
    "out.vtt": SAMPLE_VTT,
    "out.json": SAMPLE_JSON,
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_tool(tmp_path):
    """Write a fake transcriber script and return its command vector."""

    def _make(files=None, exit_code=0, delay=0.2, name="fake_tool.py"):
        script = tmp_path / name
        script.write_text(
            FAKE_TOOL.format(
                delay=delay,
                files=SAMPLE_FILES if files is None else files,
                exit_code=exit_code,
            )
        )
        return [sys.executable, str(script)]

    return _make


@pytest.fixture
def make_context(tmp_path):
    """Build a ServerContext rooted in tmp_path with a fast progress ticker."""
    from configs.config import get_config
    from anyscribe.context import ServerContext

    def _make(command, **overrides):
        settings = {
            "command": command,
            "upload_dir": str(tmp_path / "uploads"),
            "output_root": str(tmp_path / "outputs"),
            "progress_interval": 0.01,
        }
        settings.update(overrides)
        return ServerContext.from_config(get_config(), **settings)

    return _make


class RecordingSubscriber:
    """Stands in for a WebSocket; keeps everything it is sent."""

    def __init__(self):
        self.events = []

    async def send_json(self, data):
        self.events.append(data)

    def of_type(self, kind, job_id=None):
        return [
            e for e in self.events
            if e["type"] == kind and (job_id is None or e["jobId"] == job_id)
        ]


class BrokenSubscriber:
    async def send_json(self, data):
        raise RuntimeError("socket closed")


@pytest.fixture
def recorder():
    return RecordingSubscriber()
