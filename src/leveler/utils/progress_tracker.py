"""
Terminal progress display for batch runs.
"""

import os
import time
import logging
from typing import Dict, Optional

from tqdm import tqdm

from ..core.job import JobStatus, ProcessingJob
from ..core.queue import QueueEvent, QueueEventType

BAR_TOTAL = 1000


class ProgressTracker:
    """
    Renders one progress bar per job from queue events.

    Subscribe it to a ProcessingQueue with `queue.subscribe(tracker.handle_event)`.
    """

    def __init__(self, use_progress_bars: bool = True, quiet: bool = False):
        """
        Initialize progress tracker.

        Args:
            use_progress_bars: Whether to draw tqdm bars
            quiet: Suppress most output except errors
        """
        self.use_progress_bars = use_progress_bars and not quiet
        self.quiet = quiet
        self.logger = logging.getLogger(__name__)
        self._bars: Dict[str, tqdm] = {}

    def handle_event(self, event: QueueEvent):
        if event.type is QueueEventType.JOB_CHANGED:
            self._update_job(event.job)
        elif event.type is QueueEventType.BATCH_COMPLETE:
            self.close()

    def _update_job(self, job: ProcessingJob):
        if job.status is JobStatus.PENDING:
            return

        if not self.use_progress_bars:
            if job.status.is_terminal and not self.quiet:
                print(format_file_status(job.filename, "OK" if job.status is JobStatus.COMPLETE else "FAIL"))
            return

        bar = self._bars.get(job.id)
        if bar is None:
            bar = tqdm(
                total=BAR_TOTAL,
                desc=_truncate(job.filename, 30),
                unit="",
                bar_format="{desc}: {percentage:3.0f}%|{bar}| {postfix}",
                colour="green",
            )
            self._bars[job.id] = bar

        target = int(job.progress * BAR_TOTAL)
        if target > bar.n:
            bar.update(target - bar.n)
        bar.set_postfix_str(job.status.value)

        if job.status.is_terminal:
            if job.status is JobStatus.FAILED:
                bar.colour = "red"
                bar.set_postfix_str(f"{job.status.value}: {job.error_message or ''}"[:80])
            bar.close()
            del self._bars[job.id]

    def close(self):
        for bar in self._bars.values():
            bar.close()
        self._bars.clear()

    def print_summary(self, summary: str, duration_seconds: float):
        """Print the batch summary block."""
        if self.quiet:
            return
        print("\n" + "=" * 50)
        print("PROCESSING SUMMARY")
        print("=" * 50)
        print(summary)
        print(f"Processing time: {format_duration(duration_seconds)}")


class ProcessingTimer:
    """Simple timer for measuring processing duration."""

    def __init__(self):
        self.start_time = None
        self.end_time = None

    def start(self):
        self.start_time = time.time()

    def stop(self):
        """Stop the timer and return duration."""
        self.end_time = time.time()
        return self.get_duration()

    def get_duration(self) -> float:
        if self.start_time is None:
            return 0.0
        end_time = self.end_time or time.time()
        return end_time - self.start_time


def _truncate(text: str, max_width: int) -> str:
    if len(text) <= max_width:
        return text
    return text[:max_width - 3] + "..."


def format_duration(seconds: float) -> str:
    """Format duration in a human-readable way."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        return f"{minutes}m {seconds % 60:.1f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m {seconds % 60:.1f}s"


def format_file_status(filename: str, status: str, max_width: int = 50) -> str:
    """
    Format a filename for display in progress output.

    Args:
        filename: The filename to format
        status: Status string (e.g., "OK", "FAIL")
        max_width: Maximum width for the filename display
    """
    return f"[{status}] {_truncate(os.path.basename(filename), max_width)}"


def create_progress_tracker(quiet: bool = False, disable_bars: bool = False) -> ProgressTracker:
    return ProgressTracker(use_progress_bars=not disable_bars, quiet=quiet)
