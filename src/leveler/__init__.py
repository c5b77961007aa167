"""
Leveler - batch loudness normalization with FFmpeg

Measures each file with FFmpeg's loudnorm filter, applies a single linear
gain to reach the target loudness, and writes 24-bit WAV and/or CBR MP3
files next to the originals.
"""

__version__ = "1.0.0"

from .core.options import OutputMode, ProcessingOptions
from .core.job import JobStatus, ProcessingJob, ProcessingResult
from .core.pipeline import PipelineRunner
from .core.queue import ProcessingQueue
from .exceptions import LevelerError

__all__ = [
    "OutputMode",
    "ProcessingOptions",
    "JobStatus",
    "ProcessingJob",
    "ProcessingResult",
    "PipelineRunner",
    "ProcessingQueue",
    "LevelerError",
    "__version__"
]
