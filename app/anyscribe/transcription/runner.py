"""
Runs the external transcriber for each job.

One subprocess per job, no queue and no concurrency limit. Each running
job gets a simulated progress ticker and a supervisor task that waits for
the process to exit, publishes exactly one terminal event, deletes the
uploaded input and drops the job from the registry.
"""

import asyncio
import logging
import os
import random
from collections import deque
from functools import partial
from typing import Optional, Sequence

from anyscribe.events.hub import EventHub
from anyscribe.jobs.registry import JobRegistry
from anyscribe.transcription.cli import build_command, redact_command
from anyscribe.transcription.models import (
    CancelledEvent,
    CompleteEvent,
    ErrorEvent,
    Job,
    JobStatus,
    ProgressEvent,
)
from anyscribe.transcription.progress import SimulatedProgress
from anyscribe.transcription.results import (
    ResultsUnavailableError,
    bundle_stats,
    read_results,
)

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20
READ_CHUNK_SIZE = 4096
SHUTDOWN_GRACE_SECONDS = 5.0
EXIT_POLL_SECONDS = 0.05
PIPE_DRAIN_SECONDS = 2.0


class JobRunner:
    def __init__(
        self,
        registry: JobRegistry,
        hub: EventHub,
        command: Optional[Sequence[str]] = None,
        progress_interval: float = 1.0,
        progress_max_step: float = 10.0,
        progress_cap: int = 90,
        rng: Optional[random.Random] = None,
        pipe_drain_timeout: float = PIPE_DRAIN_SECONDS,
    ) -> None:
        self.registry = registry
        self.hub = hub
        self.command = list(command) if command else None
        self.progress_interval = progress_interval
        self.progress_max_step = progress_max_step
        self.progress_cap = progress_cap
        self.rng = rng
        self.pipe_drain_timeout = pipe_drain_timeout
        self._supervisors = set()

    # ── Start ────────────────────────────────────────────────────────────

    async def start(self, job: Job) -> bool:
        """
        Register ``job`` and spawn its process.

        Returns False when the process could not be spawned. The failure
        is published as an ``error`` event and the job is discarded. A job
        cancelled while the spawn was pending is terminated right away.
        """
        self.registry.add(job)
        args = build_command(job.source, job.output_dir, job.settings, self.command)
        logger.info("Starting transcription %s: %s", job.job_id, redact_command(args))

        try:
            job.process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Failed to spawn transcriber for job %s: %s", job.job_id, exc)
            self.registry.remove(job.job_id)
            self._cleanup_input(job)
            if job.status is JobStatus.CANCELLED:
                return False
            job.status = JobStatus.FAILED
            await self.hub.publish(ErrorEvent(job_id=job.job_id, message=str(exc)))
            return False

        progress = None
        if job.status is JobStatus.CANCELLED:
            # Cancelled while spawning; the cancelled event is already out
            logger.info("Job %s cancelled during spawn, terminating", job.job_id)
            self._terminate(job)
        else:
            job.status = JobStatus.PROCESSING
            progress = SimulatedProgress(
                partial(self._on_progress, job),
                interval=self.progress_interval,
                max_step=self.progress_max_step,
                cap=self.progress_cap,
                rng=self.rng,
            )
            progress.start()
        job.supervisor = asyncio.create_task(self._supervise(job, progress))
        self._supervisors.add(job.supervisor)
        job.supervisor.add_done_callback(self._supervisors.discard)
        logger.info("Job %s running as pid %d", job.job_id, job.process.pid)
        return True

    async def _on_progress(self, job: Job, value: int) -> None:
        if job.status is not JobStatus.PROCESSING:
            return
        job.progress = max(job.progress, value)
        await self.hub.publish(ProgressEvent(job_id=job.job_id, progress=job.progress))

    # ── Supervision ──────────────────────────────────────────────────────

    async def _supervise(self, job: Job, progress: Optional[SimulatedProgress]) -> None:
        proc = job.process
        stderr_tail = deque(maxlen=STDERR_TAIL_LINES)
        pumps = asyncio.gather(
            self._pump(job.job_id, "stdout", proc.stdout),
            self._pump(job.job_id, "stderr", proc.stderr, stderr_tail),
        )
        try:
            code = await self._wait_for_exit(proc)
            try:
                await asyncio.wait_for(pumps, timeout=self.pipe_drain_timeout)
            except asyncio.TimeoutError:
                # Descendants of the tool still hold the pipes
                logger.warning(
                    "Job %s exited but its output pipes are still open, detaching",
                    job.job_id,
                )
        finally:
            if not pumps.done():
                pumps.cancel()
            # Done before the terminal event goes out
            if progress is not None:
                await progress.stop()
            self._cleanup_input(job)
            self.registry.remove(job.job_id)

        if job.status is JobStatus.CANCELLED:
            logger.info("Job %s cancelled (exit code %s)", job.job_id, code)
        elif code == 0:
            await self._complete(job)
        else:
            logger.error(
                "Job %s failed with code %s. stderr tail:\n%s",
                job.job_id, code, "\n".join(stderr_tail),
            )
            job.status = JobStatus.FAILED
            await self.hub.publish(ErrorEvent(
                job_id=job.job_id,
                message=f"Transcription failed with code {code}",
            ))

    @staticmethod
    async def _wait_for_exit(proc) -> int:
        # proc.wait() only returns once every pipe is closed on some versions
        while proc.returncode is None:
            await asyncio.sleep(EXIT_POLL_SECONDS)
        return proc.returncode

    async def _pump(self, job_id: str, name: str, stream, tail: Optional[deque] = None) -> None:
        """Drain one of the process's output streams into the log."""
        pending = ""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending += chunk.decode("utf-8", errors="replace").replace("\r", "\n")
            *lines, pending = pending.split("\n")
            for line in lines:
                self._log_line(job_id, name, line, tail)
        self._log_line(job_id, name, pending, tail)

    @staticmethod
    def _log_line(job_id: str, name: str, line: str, tail: Optional[deque]) -> None:
        line = line.rstrip()
        if not line:
            return
        logger.debug("[%s %s] %s", job_id, name, line)
        if tail is not None:
            tail.append(line)

    async def _complete(self, job: Job) -> None:
        try:
            bundle = await asyncio.to_thread(read_results, job.output_dir)
        except (ResultsUnavailableError, OSError) as exc:
            logger.error("Job %s produced no readable results: %s", job.job_id, exc)
            job.status = JobStatus.FAILED
            await self.hub.publish(ErrorEvent(
                job_id=job.job_id,
                message="Failed to read transcription results",
            ))
            return

        job.status = JobStatus.COMPLETED
        job.progress = 100
        stats = bundle_stats(bundle)
        logger.info(
            "Job %s completed: %d words, %d cues, output in %s",
            job.job_id, stats.words, stats.cues, job.output_dir,
        )
        await self.hub.publish(CompleteEvent(job_id=job.job_id, results=bundle))

    def _cleanup_input(self, job: Job) -> None:
        if not job.is_upload:
            return
        try:
            os.remove(job.source)
            logger.debug("Removed uploaded input %s", job.source)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove uploaded input %s: %s", job.source, exc)

    # ── Cancellation ─────────────────────────────────────────────────────

    async def cancel(self, job_id: str) -> bool:
        """
        Terminate a running job. Returns False for unknown ids.

        The job is marked cancelled and dropped from the registry at once;
        the supervisor still reaps the process and deletes the upload.
        """
        job = self.registry.get(job_id)
        if job is None:
            return False

        job.status = JobStatus.CANCELLED
        self.registry.remove(job_id)
        # While the spawn is still pending, start() terminates the process
        self._terminate(job)
        logger.info("Job %s cancelled", job_id)
        await self.hub.publish(CancelledEvent(job_id=job_id))
        return True

    @staticmethod
    def _terminate(job: Job) -> None:
        if job.process is None or job.process.returncode is not None:
            return
        try:
            job.process.terminate()
        except ProcessLookupError:
            pass

    async def shutdown(self) -> None:
        """Cancel every running job and wait briefly for the processes."""
        for job in self.registry.all():
            await self.cancel(job.job_id)
        if self._supervisors:
            await asyncio.wait(list(self._supervisors), timeout=SHUTDOWN_GRACE_SECONDS)
