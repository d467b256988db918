"""
Data models for the transcription module.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ModelSize = Literal["tiny", "small", "medium", "large", "large-v2", "large-v3"]
Task = Literal["transcribe", "translate"]
Device = Literal["auto", "cpu", "cuda", "insane", "mlx"]
OutputFormat = Literal["txt", "srt", "vtt", "json"]


class JobStatus(str, Enum):
    """Possible states of a transcription job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TranscriptionSettings(CamelModel):
    """User-chosen options for one job. Frozen once parsed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    model: ModelSize = "small"
    language: str = Field(
        default="auto", min_length=2, max_length=16,
        pattern=r"^[A-Za-z\-]+$",
    )
    task: Task = "transcribe"
    device: Device = "auto"
    output_format: List[OutputFormat] = Field(
        default_factory=lambda: ["srt", "txt", "vtt"]
    )
    initial_prompt: Optional[str] = Field(default=None, max_length=2000)
    batch_size: Optional[int] = Field(default=None, ge=1, le=64)
    hugging_face_token: Optional[str] = Field(
        default=None, max_length=256, repr=False
    )


class ResultBundle(CamelModel):
    """Artifacts collected from a finished job's output directory."""

    text: str = ""
    srt: str = ""
    vtt: str = ""
    json_data: Any = Field(default=None, alias="json")
    speakers: Any = None
    output_dir: str


class ResultStats(CamelModel):
    words: int
    characters: int
    cues: int
    speakers: Optional[int] = None


# ── Push-channel events ──────────────────────────────────────────────────


class ProgressEvent(CamelModel):
    type: Literal["progress"] = "progress"
    job_id: str
    progress: int


class CompleteEvent(CamelModel):
    type: Literal["complete"] = "complete"
    job_id: str
    results: ResultBundle


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    job_id: str
    message: str


class CancelledEvent(CamelModel):
    type: Literal["cancelled"] = "cancelled"
    job_id: str


# ── In-memory job record ─────────────────────────────────────────────────


@dataclass
class Job:
    """
    One submitted transcription request.

    ``source`` is either a local upload path (``is_upload``) or a remote
    URL; a job never carries both.
    """

    job_id: str
    source: str
    is_upload: bool
    settings: TranscriptionSettings
    output_dir: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    created_at: float = field(default_factory=time.time)
    process: Optional[asyncio.subprocess.Process] = None
    supervisor: Optional[asyncio.Task] = None

    def summary(self) -> dict:
        """Public view of the job (no paths, no credentials)."""
        return {
            "jobId": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "source": "file" if self.is_upload else "url",
            "model": self.settings.model,
            "device": self.settings.device,
            "createdAt": self.created_at,
        }
