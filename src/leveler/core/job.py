"""
Per-file job state and the aggregate batch result.
"""

import os
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from .measurements import LoudnormMeasurements
from .options import OutputMode, ProcessingOptions
from ..utils.file_utils import output_stem


class JobStatus(Enum):
    PENDING = "Pending"
    ANALYZING = "Analyzing"
    PROCESSING = "Processing"
    ENCODING = "Encoding MP3"
    VERIFYING = "Verifying"
    COMPLETE = "Complete"
    FAILED = "Failed"

    @property
    def is_active(self) -> bool:
        """True while the pipeline is working on the job."""
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


ACTIVE_STATUSES = frozenset({
    JobStatus.ANALYZING, JobStatus.PROCESSING, JobStatus.ENCODING, JobStatus.VERIFYING,
})

# Pipeline phase name -> status it puts the job in
PHASE_STATUSES = {
    "Analyzing": JobStatus.ANALYZING,
    "Processing": JobStatus.PROCESSING,
    "Encoding MP3": JobStatus.ENCODING,
    "Verifying": JobStatus.VERIFYING,
}


JobListener = Callable[["ProcessingJob"], None]


class ProcessingJob:
    """
    Mutable state of one input file in the queue.

    Listeners registered with subscribe() are called with the job after every
    change made through update(), set_phase(), complete() or fail().
    """

    def __init__(self, input_path: str):
        self.id = uuid.uuid4().hex
        self.input_path = os.path.abspath(input_path)
        self.added_at = datetime.now()

        self.status = JobStatus.PENDING
        self.progress = 0.0
        self.output_paths: List[str] = []
        self.error_message: Optional[str] = None
        self.measurements: Optional[LoudnormMeasurements] = None

        self._listeners: List[JobListener] = []

    def __repr__(self):
        return f"ProcessingJob({self.filename!r}, status={self.status.name}, progress={self.progress:.2f})"

    @property
    def filename(self) -> str:
        return os.path.basename(self.input_path)

    @property
    def stem_name(self) -> str:
        return os.path.splitext(self.filename)[0]

    @property
    def output_directory(self) -> str:
        return os.path.dirname(self.input_path)

    def output_stem(self, options: ProcessingOptions) -> str:
        """Stem shared by every output of this job under the given options."""
        return output_stem(self.input_path, options.target_lufs_string)

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logging.error(f"Job listener failed for {self.filename}: {e}", exc_info=True)

    def update(self, status: Optional[JobStatus] = None, progress: Optional[float] = None):
        """Change status and/or progress, then notify listeners."""
        if status is not None:
            self.status = status
        if progress is not None:
            self.progress = min(1.0, max(0.0, float(progress)))
        self._notify()

    def set_phase(self, phase: str, progress: float):
        """Apply a pipeline progress report keyed by phase name."""
        self.update(status=PHASE_STATUSES.get(phase), progress=progress)

    def start(self):
        """Reset per-run state as the job is dispatched."""
        self.output_paths = []
        self.error_message = None
        self.measurements = None
        self.update(status=JobStatus.ANALYZING, progress=0.0)

    def complete(self, output_paths: List[str]):
        self.output_paths.extend(output_paths)
        self.update(status=JobStatus.COMPLETE, progress=1.0)

    def fail(self, message: str):
        self.error_message = message
        self.update(status=JobStatus.FAILED)


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregate outcome reported when a batch finishes."""
    success_count: int
    failed_count: int
    skipped_count: int
    options: ProcessingOptions
    output_directory: Optional[str] = None

    @property
    def summary(self) -> str:
        lines = []

        file_word = "file" if self.success_count == 1 else "files"
        status_line = f"{self.success_count} {file_word} processed successfully"
        if self.failed_count > 0:
            status_line += f", {self.failed_count} failed"
        lines.append(status_line)

        if self.skipped_count > 0:
            lines.append(f"{self.skipped_count} skipped")

        options = self.options
        lines.append("")
        lines.append(f"Target: {options.target_lufs_string} LUFS ({options.true_peak_string} dBTP)")
        lines.append(f"Sample rate: {options.sample_rate_display}")
        lines.append(f"Output: {options.output_mode.value}")
        if options.output_mode is not OutputMode.WAV:
            lines.append(f"MP3: {options.mp3_bitrate_string} CBR")
        lines.append(f"Phase rotation: {'On (150 Hz)' if options.phase_rotation else 'Off'}")

        return "\n".join(lines)
