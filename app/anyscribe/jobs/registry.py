"""
In-memory registry of running transcription jobs.

Entries live only while their external process runs and are lost on
restart. All access happens on the server's event loop, so no locking.
"""

import logging
from typing import Dict, List, Optional

from commons import generate_job_id
from anyscribe.transcription.models import Job

logger = logging.getLogger(__name__)


class JobRegistry:
    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def new_id(self) -> str:
        """Allocate an id not currently in use."""
        job_id = generate_job_id()
        while job_id in self._jobs:
            job_id = generate_job_id()
        return job_id

    def add(self, job: Job) -> None:
        if job.job_id in self._jobs:
            raise KeyError(f"Job {job.job_id} already registered")
        self._jobs[job.job_id] = job
        logger.debug("Job %s registered (%d active)", job.job_id, len(self._jobs))

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def remove(self, job_id: str) -> Optional[Job]:
        job = self._jobs.pop(job_id, None)
        if job is not None:
            logger.debug("Job %s removed (%d active)", job_id, len(self._jobs))
        return job

    def all(self) -> List[Job]:
        return sorted(self._jobs.values(), key=lambda job: job.created_at)
