"""
Process-wide server state handed to request handlers.

The job registry, the event hub and the runner are created together and
stored on ``app.state.context``; route handlers receive them through the
``get_context`` dependency instead of importing module globals.
"""

import os
import random
from dataclasses import dataclass
from types import SimpleNamespace
from typing import List, Optional

from starlette.requests import HTTPConnection

from anyscribe.events.hub import EventHub
from anyscribe.jobs.registry import JobRegistry
from anyscribe.transcription.runner import JobRunner


@dataclass
class ServerContext:
    registry: JobRegistry
    hub: EventHub
    runner: JobRunner
    command: List[str]
    upload_dir: str
    output_root: str
    max_upload_size: int

    @classmethod
    def from_config(
        cls,
        cfg: SimpleNamespace,
        rng: Optional[random.Random] = None,
        **overrides,
    ) -> "ServerContext":
        """Build the context from the config namespace, with overrides."""
        settings = {
            "command": list(cfg.TRANSCRIBER_COMMAND),
            "upload_dir": cfg.UPLOAD_DIR,
            "output_root": cfg.OUTPUT_ROOT,
            "max_upload_size": cfg.MAX_UPLOAD_SIZE,
            "progress_interval": cfg.PROGRESS_INTERVAL_SECONDS,
            "progress_max_step": cfg.PROGRESS_MAX_STEP,
            "progress_cap": cfg.PROGRESS_CAP,
            "replay_limit": cfg.EVENT_REPLAY_LIMIT,
        }
        settings.update(overrides)

        registry = JobRegistry()
        hub = EventHub(replay_limit=settings["replay_limit"])
        runner = JobRunner(
            registry,
            hub,
            command=settings["command"],
            progress_interval=settings["progress_interval"],
            progress_max_step=settings["progress_max_step"],
            progress_cap=settings["progress_cap"],
            rng=rng,
        )
        os.makedirs(settings["upload_dir"], exist_ok=True)
        os.makedirs(settings["output_root"], exist_ok=True)
        return cls(
            registry=registry,
            hub=hub,
            runner=runner,
            command=settings["command"],
            upload_dir=settings["upload_dir"],
            output_root=settings["output_root"],
            max_upload_size=settings["max_upload_size"],
        )

    def output_dir_for(self, job_id: str) -> str:
        return os.path.join(self.output_root, f"transcribe-output-{job_id}")


def get_context(connection: HTTPConnection) -> ServerContext:
    """FastAPI dependency: works for both HTTP requests and WebSockets."""
    return connection.app.state.context
