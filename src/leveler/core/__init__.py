"""
Core normalization modules: options, measurement parsing, encoder invocation,
the per-job pipeline and the job queue.
"""

from .options import OutputMode, ProcessingOptions
from .measurements import LoudnormMeasurements, parse_loudnorm_json
from .encoder import EncoderInvoker, EncoderResult, locate_ffmpeg
from .pipeline import PipelineProgress, PipelineRunner
from .job import JobStatus, ProcessingJob, ProcessingResult
from .queue import ProcessingQueue, QueueEvent, QueueEventType

__all__ = [
    "OutputMode",
    "ProcessingOptions",
    "LoudnormMeasurements",
    "parse_loudnorm_json",
    "EncoderInvoker",
    "EncoderResult",
    "locate_ffmpeg",
    "PipelineProgress",
    "PipelineRunner",
    "JobStatus",
    "ProcessingJob",
    "ProcessingResult",
    "ProcessingQueue",
    "QueueEvent",
    "QueueEventType"
]
