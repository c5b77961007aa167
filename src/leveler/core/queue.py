"""
Job queue and the sequential batch loop.

The queue lives on one asyncio event loop (the foreground context). A batch
runs as a single background task on that loop and processes pending jobs one
at a time; job state is only ever mutated on the loop's thread.
"""

import os
import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from .job import JobStatus, ProcessingJob, ProcessingResult
from .options import ProcessingOptions
from .pipeline import PipelineProgress, PipelineRunner
from ..exceptions import LevelerError, classify_error
from ..utils.file_utils import collect_input_files
from ..utils.run_log import log_run_end, log_run_start


class QueueEventType(Enum):
    JOB_ADDED = "job_added"
    JOB_REMOVED = "job_removed"
    JOB_CHANGED = "job_changed"
    BATCH_STARTED = "batch_started"
    BATCH_COMPLETE = "batch_complete"


@dataclass(frozen=True)
class QueueEvent:
    type: QueueEventType
    job: Optional[ProcessingJob] = None
    result: Optional[ProcessingResult] = None


QueueListener = Callable[[QueueEvent], None]


class ProcessingQueue:
    """
    Ordered collection of jobs with a single-flight batch runner.

    Insertion order is both display and processing order. At most one batch
    runs at a time, and a job whose status is active cannot be removed.
    """

    def __init__(self, runner: Optional[PipelineRunner] = None,
                 options: Optional[ProcessingOptions] = None,
                 preset_store=None):
        """
        Initialize the queue.

        Args:
            runner: Pipeline runner invoked once per job
            options: Initial processing options
            preset_store: Optional PresetStore for apply/save preset operations
        """
        self.runner = runner or PipelineRunner()
        self.options = options or ProcessingOptions()
        self.preset_store = preset_store

        self.jobs: List[ProcessingJob] = []
        self.is_processing = False
        self.processing_complete = False

        self._listeners: List[QueueListener] = []
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[int] = None
        self._cancel_requested = False
        self._batch_jobs: List[ProcessingJob] = []
        self._batch_options: Optional[ProcessingOptions] = None
        self._last_result: Optional[ProcessingResult] = None
        self._job_subscriptions: Dict[str, Callable[[], None]] = {}
        self.batch_errors: List[Exception] = []

    # Views

    @property
    def pending_jobs(self) -> List[ProcessingJob]:
        return [job for job in self.jobs if job.status is JobStatus.PENDING]

    @property
    def completed_jobs(self) -> List[ProcessingJob]:
        return [job for job in self.jobs if job.status is JobStatus.COMPLETE]

    @property
    def failed_jobs(self) -> List[ProcessingJob]:
        return [job for job in self.jobs if job.status is JobStatus.FAILED]

    def get_job(self, job_id: str) -> Optional[ProcessingJob]:
        return next((job for job in self.jobs if job.id == job_id), None)

    def __len__(self):
        return len(self.jobs)

    # Events

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """Register a listener for queue events; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _emit(self, event_type: QueueEventType, job: Optional[ProcessingJob] = None,
              result: Optional[ProcessingResult] = None):
        event = QueueEvent(event_type, job, result)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logging.error(f"Queue listener failed on {event_type.value}: {e}", exc_info=True)

    def _on_job_changed(self, job: ProcessingJob):
        self._emit(QueueEventType.JOB_CHANGED, job)

    # Membership

    def submit(self, path: str) -> Optional[str]:
        """
        Add a file to the queue.

        Returns:
            The new job id, or None if the path is already queued.
        """
        input_path = os.path.abspath(path)
        if any(job.input_path == input_path for job in self.jobs):
            return None

        job = ProcessingJob(input_path)
        self._job_subscriptions[job.id] = job.subscribe(self._on_job_changed)
        self.jobs.append(job)
        logging.info(f"Added to queue: {job.filename}")
        self._emit(QueueEventType.JOB_ADDED, job)
        return job.id

    def add_paths(self, paths: Iterable[str]) -> List[str]:
        """Expand files and directories and submit every supported audio file."""
        job_ids = []
        for input_file in collect_input_files(paths):
            job_id = self.submit(input_file)
            if job_id:
                job_ids.append(job_id)
        return job_ids

    def remove(self, job_id: str) -> bool:
        """Remove a job unless it is being processed. Returns True if removed."""
        return bool(self.remove_many([job_id]))

    def remove_many(self, job_ids: Iterable[str]) -> List[str]:
        """
        Remove the given jobs, keeping any that are active.

        Returns:
            Ids of the jobs actually removed.
        """
        wanted = set(job_ids)
        removed = [job for job in self.jobs if job.id in wanted and not job.status.is_active]
        if not removed:
            return []

        self.jobs = [job for job in self.jobs if job not in removed]
        for job in removed:
            unsubscribe = self._job_subscriptions.pop(job.id, None)
            if unsubscribe:
                unsubscribe()
            logging.info(f"Removed from queue: {job.filename}")
            self._emit(QueueEventType.JOB_REMOVED, job)
        return [job.id for job in removed]

    def clear_completed(self):
        self.remove_many([job.id for job in self.completed_jobs])

    def clear_all(self):
        if self.is_processing:
            return
        self.remove_many([job.id for job in self.jobs])

    # Presets

    def apply_preset(self, preset):
        self.options = preset.options
        if self.preset_store is not None:
            self.preset_store.selected_preset_id = preset.id
        logging.info(f"Applied preset: {preset.name}")

    def save_current_as_preset(self, name: str):
        if self.preset_store is None:
            raise LevelerError("No preset store configured")
        return self.preset_store.save_preset(name, self.options)

    # Batch control

    def start_batch(self, options: Optional[ProcessingOptions] = None) -> bool:
        """
        Start processing every pending job in the background.

        Must be called from the event loop that owns the queue. Does nothing if
        a batch is already running or no job is pending.

        Returns:
            True if a batch was started.

        Raises:
            ToolNotFoundError: If ffmpeg cannot be located; no batch is started.
        """
        if self.is_processing:
            return False
        if options is not None:
            self.options = options

        pending = self.pending_jobs
        if not pending:
            return False

        self.runner.check_tool()

        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self._cancel_requested = False
        self._batch_jobs = pending
        self._batch_options = self.options
        self.batch_errors = []
        self.is_processing = True
        self.processing_complete = False

        log_run_start()
        logging.info(f"Starting batch processing with {len(pending)} files")
        logging.info(f"Options: {self._batch_options}")

        self._emit(QueueEventType.BATCH_STARTED)
        self._task = self._loop.create_task(self._process_all_jobs(pending, self._batch_options))
        return True

    def cancel_batch(self):
        """
        Stop dispatching further jobs.

        The job currently being processed runs to completion; its ffmpeg
        process is not killed.
        """
        if not self.is_processing or self._cancel_requested:
            return
        self._cancel_requested = True
        logging.info("Cancellation requested; finishing current job")

    async def wait(self) -> Optional[ProcessingResult]:
        """
        Wait for the running batch, if any, and return the latest result.

        Cancelling the waiter does not cancel the batch.
        """
        if self._task is not None:
            await asyncio.shield(self._task)
        return self._last_result

    async def _process_all_jobs(self, jobs: List[ProcessingJob], options: ProcessingOptions):
        try:
            for job in jobs:
                if self._cancel_requested:
                    break
                # Removed or already handled since the batch started
                if job not in self.jobs or job.status is not JobStatus.PENDING:
                    continue
                await self._process_job(job, options)
        finally:
            self.is_processing = False
            self.processing_complete = True
            self._task = None

            result = self.get_result()
            self._last_result = result
            logging.info(f"Batch complete: {result.success_count} success, "
                         f"{result.failed_count} failed, {result.skipped_count} skipped")
            log_run_end()
            self._emit(QueueEventType.BATCH_COMPLETE, result=result)

    async def _process_job(self, job: ProcessingJob, options: ProcessingOptions):
        job.start()

        try:
            output_paths = await self.runner.process(
                job.input_path, options,
                lambda report: self._dispatch_progress(job, report)
            )
        except LevelerError as e:
            self.batch_errors.append(e)
            job.fail(str(e))
            logging.error(f"Failed ({classify_error(e)}): {job.filename} - {e}")
        except Exception as e:
            self.batch_errors.append(e)
            job.fail(f"Unexpected error: {e}")
            logging.error(f"Unexpected error processing {job.filename}: {e}", exc_info=True)
        except asyncio.CancelledError:
            job.fail("Cancelled")
            logging.warning(f"Cancelled while processing: {job.filename}")
            raise
        else:
            job.complete(output_paths)

    def _dispatch_progress(self, job: ProcessingJob, report: PipelineProgress):
        """Apply a progress report on the loop thread."""
        if threading.get_ident() == self._loop_thread:
            self._apply_progress(job, report)
        else:
            self._loop.call_soon_threadsafe(self._apply_progress, job, report)

    def _apply_progress(self, job: ProcessingJob, report: PipelineProgress):
        if job.status.is_terminal:
            return
        if report.measurements is not None:
            job.measurements = report.measurements
        job.set_phase(report.phase, report.progress)

    def get_result(self) -> ProcessingResult:
        """Aggregate counts over the queue, plus jobs skipped by cancellation."""
        completed = self.completed_jobs
        skipped = [job for job in self._batch_jobs
                   if job in self.jobs and job.status is JobStatus.PENDING]
        return ProcessingResult(
            success_count=len(completed),
            failed_count=len(self.failed_jobs),
            skipped_count=len(skipped),
            options=self._batch_options or self.options,
            output_directory=completed[0].output_directory if completed else None,
        )
