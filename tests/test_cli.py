import sys
from types import SimpleNamespace

import pytest

from anyscribe.transcription import cli
from anyscribe.transcription.cli import (
    REDACTED,
    TranscriberUnavailableError,
    build_command,
    ensure_transcriber,
    install_transcriber,
    probe_transcriber,
    redact_command,
)
from anyscribe.transcription.models import TranscriptionSettings

TOOL = ["transcribe-anything"]


def test_default_settings_emit_only_required_flags():
    args = build_command("/tmp/in.mp3", "/tmp/out", TranscriptionSettings(), TOOL)
    assert args == [
        "transcribe-anything", "/tmp/in.mp3",
        "--output_dir", "/tmp/out",
        "--model", "small",
        "--task", "transcribe",
    ]


def test_non_default_settings_add_optional_flags():
    settings = TranscriptionSettings.model_validate({
        "model": "large-v3",
        "language": "de",
        "task": "translate",
        "device": "cuda",
        "initialPrompt": "Kubernetes, etcd",
        "batchSize": 16,
        "huggingFaceToken": "hf_secret",
    })
    args = build_command("https://example.com/v", "/tmp/out", settings, TOOL)

    assert args[1] == "https://example.com/v"
    pairs = dict(zip(args[2::2], args[3::2]))
    assert pairs == {
        "--output_dir": "/tmp/out",
        "--model": "large-v3",
        "--task": "translate",
        "--language": "de",
        "--device": "cuda",
        "--initial_prompt": "Kubernetes, etcd",
        "--batch-size": "16",
        "--hf_token": "hf_secret",
    }


def test_empty_prompt_and_token_are_skipped():
    settings = TranscriptionSettings(initial_prompt="", hugging_face_token="")
    args = build_command("in.wav", "out", settings, TOOL)
    assert "--initial_prompt" not in args
    assert "--hf_token" not in args


def test_redact_command_masks_token_only():
    args = ["tool", "in.wav", "--hf_token", "hf_secret", "--model", "tiny"]
    redacted = redact_command(args)
    assert redacted == ["tool", "in.wav", "--hf_token", REDACTED, "--model", "tiny"]
    assert args[3] == "hf_secret"


@pytest.mark.anyio
async def test_probe_missing_binary_is_false():
    assert await probe_transcriber(["definitely-not-a-real-binary-xyz"]) is False


@pytest.mark.anyio
async def test_probe_runnable_command_is_true():
    assert await probe_transcriber([sys.executable, "-c", "pass"]) is True


@pytest.mark.anyio
async def test_probe_failing_command_is_false():
    assert await probe_transcriber([sys.executable, "-c", "raise SystemExit(2)"]) is False


@pytest.mark.anyio
async def test_ensure_raises_without_auto_install():
    with pytest.raises(TranscriberUnavailableError):
        await ensure_transcriber(["definitely-not-a-real-binary-xyz"], auto_install=False)


@pytest.mark.anyio
async def test_ensure_passes_when_present():
    await ensure_transcriber([sys.executable, "-c", "pass"], auto_install=False)


# ── Self-heal ────────────────────────────────────────────────────────────


class FakeProcess:
    def __init__(self, code):
        self.code = code

    async def wait(self):
        return self.code


@pytest.fixture
def spawned(monkeypatch):
    """Replace subprocess creation in cli with a recorder."""
    spawn = SimpleNamespace(calls=[], code=0)

    async def fake_exec(*args, **kwargs):
        spawn.calls.append(list(args))
        return FakeProcess(spawn.code)

    monkeypatch.setattr(cli.asyncio, "create_subprocess_exec", fake_exec)
    return spawn


def _stub_preflight(monkeypatch, probes, installed):
    """Script probe answers and the install outcome; returns the call log."""
    log = []
    answers = list(probes)

    async def fake_probe(command=None):
        log.append("probe")
        return answers.pop(0)

    async def fake_install(package=None):
        log.append("install")
        return installed

    monkeypatch.setattr(cli, "probe_transcriber", fake_probe)
    monkeypatch.setattr(cli, "install_transcriber", fake_install)
    return log


@pytest.mark.anyio
async def test_install_runs_pip_in_current_interpreter(spawned):
    assert await install_transcriber("transcribe-anything") is True
    assert spawned.calls == [[sys.executable, "-m", "pip", "install", "transcribe-anything"]]


@pytest.mark.anyio
async def test_install_reports_pip_failure(spawned):
    spawned.code = 1
    assert await install_transcriber("transcribe-anything") is False


@pytest.mark.anyio
async def test_ensure_installs_and_reprobes(monkeypatch):
    log = _stub_preflight(monkeypatch, probes=[False, True], installed=True)
    await ensure_transcriber(TOOL, auto_install=True)
    assert log == ["probe", "install", "probe"]


@pytest.mark.anyio
async def test_ensure_raises_when_still_missing_after_install(monkeypatch):
    log = _stub_preflight(monkeypatch, probes=[False, False], installed=True)
    with pytest.raises(TranscriberUnavailableError):
        await ensure_transcriber(TOOL, auto_install=True)
    assert log == ["probe", "install", "probe"]


@pytest.mark.anyio
async def test_ensure_raises_when_install_fails(monkeypatch):
    log = _stub_preflight(monkeypatch, probes=[False], installed=False)
    with pytest.raises(TranscriberUnavailableError):
        await ensure_transcriber(TOOL, auto_install=True)
    assert log == ["probe", "install"]


@pytest.mark.anyio
async def test_ensure_skips_install_when_present(monkeypatch):
    log = _stub_preflight(monkeypatch, probes=[True], installed=True)
    await ensure_transcriber(TOOL, auto_install=True)
    assert log == ["probe"]
