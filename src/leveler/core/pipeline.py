"""
Three-pass loudness normalization pipeline for a single job.

Pass 1 measures the file with loudnorm, pass 2 renders a 24-bit WAV with a
linear (static) gain derived from those measurements, and pass 3 optionally
encodes a CBR MP3. Every output is written to a hidden temp file first and
renamed to its public name only once its pass has succeeded.
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .encoder import EncoderInvoker
from .measurements import LoudnormMeasurements, parse_loudnorm_json
from .options import OutputMode, ProcessingOptions
from ..exceptions import AnalysisError, EncodeError, OutputNotCreatedError, RenderError
from ..utils.file_utils import (
    final_output_path, output_stem, promote, remove_quietly, temp_output_path
)
from ..utils.resource_manager import ResourceMonitor

PHASE_ANALYZING = "Analyzing"
PHASE_PROCESSING = "Processing"
PHASE_ENCODING = "Encoding MP3"
PHASE_VERIFYING = "Verifying"

# Start of each phase's band on the job's progress bar
ANALYZE_START = 0.0
RENDER_START = 0.2
ENCODE_START = 0.7
VERIFY_START = 0.95

PHASE_ROTATION_FILTER = "allpass=f=150"
DIAGNOSTIC_TAIL_LENGTH = 500

COMMON_ARGS = ["-hide_banner", "-nostats", "-y"]


@dataclass(frozen=True)
class PipelineProgress:
    """Progress report emitted by the runner."""
    phase: str
    progress: float
    measurements: Optional[LoudnormMeasurements] = None


ProgressHandler = Callable[[PipelineProgress], None]


def build_filter_chain(options: ProcessingOptions,
                       measurements: Optional[LoudnormMeasurements] = None) -> str:
    """
    Build the -af expression for the analysis or the render pass.

    Without measurements the loudnorm filter prints a JSON report; with them it
    applies a single linear gain.
    """
    filters = []
    if options.phase_rotation:
        filters.append(PHASE_ROTATION_FILTER)

    loudnorm = (f"loudnorm=I={options.target_lufs_string}"
                f":TP={options.true_peak_string}"
                f":LRA={options.lra_string}")
    if measurements is None:
        loudnorm += ":print_format=json"
    else:
        loudnorm += (f":measured_I={measurements.input_i}"
                     f":measured_TP={measurements.input_tp}"
                     f":measured_LRA={measurements.input_lra}"
                     f":measured_thresh={measurements.input_thresh}"
                     f":offset={measurements.target_offset}"
                     f":linear=true")
    filters.append(loudnorm)
    return ",".join(filters)


def build_analysis_args(input_path: str, options: ProcessingOptions) -> List[str]:
    return COMMON_ARGS + [
        "-i", input_path,
        "-af", build_filter_chain(options),
        "-f", "null",
        "-",
    ]


def build_render_args(input_path: str, output_path: str, options: ProcessingOptions,
                      measurements: LoudnormMeasurements) -> List[str]:
    return COMMON_ARGS + [
        "-i", input_path,
        "-af", build_filter_chain(options, measurements),
        "-ar", str(options.sample_rate),
        "-c:a", "pcm_s24le",
        "-f", "wav",
        output_path,
    ]


def build_encode_args(input_path: str, output_path: str, options: ProcessingOptions) -> List[str]:
    return COMMON_ARGS + [
        "-i", input_path,
        "-c:a", "libmp3lame",
        "-b:a", options.mp3_bitrate_string,
        "-ar", str(options.sample_rate),
        "-f", "mp3",
        output_path,
    ]


class _ProgressEmitter:
    """Forwards progress reports, never letting the value go backwards."""

    def __init__(self, handler: Optional[ProgressHandler]):
        self.handler = handler
        self.last = 0.0

    def __call__(self, phase: str, progress: float,
                 measurements: Optional[LoudnormMeasurements] = None):
        self.last = max(self.last, progress)
        if self.handler:
            self.handler(PipelineProgress(phase, self.last, measurements))


class PipelineRunner:
    """
    Runs the analyze, render and encode passes for one job.

    Holds no state between jobs; each call to process() is independent.
    """

    def __init__(self, invoker: Optional[EncoderInvoker] = None,
                 resource_monitor: Optional[ResourceMonitor] = None):
        """
        Initialize the runner.

        Args:
            invoker: Encoder invoker used for every pass
            resource_monitor: Optional disk-space checker run before the render pass
        """
        self.invoker = invoker or EncoderInvoker()
        self.resource_monitor = resource_monitor

    def check_tool(self) -> str:
        """Resolve the encoder binary, raising ToolNotFoundError if missing."""
        return self.invoker.resolve()

    async def process(self, input_path: str, options: ProcessingOptions,
                      progress_handler: Optional[ProgressHandler] = None) -> List[str]:
        """
        Normalize one input file.

        Args:
            input_path: Audio file to process; never modified
            options: Settings applied to this run
            progress_handler: Receives PipelineProgress reports

        Returns:
            List of final output paths, WAV before MP3

        Raises:
            FileProcessingError subclasses for per-job failures, ResourceError
            when the output directory is short on space, ToolNotFoundError when
            ffmpeg is unavailable.
        """
        emit = _ProgressEmitter(progress_handler)
        filename = os.path.basename(input_path)
        output_dir = os.path.dirname(os.path.abspath(input_path))
        stem = output_stem(input_path, options.target_lufs_string)
        mode = options.output_mode

        logging.info(f"Processing: {filename}")
        logging.info(f"Options: {options}")

        emit(PHASE_ANALYZING, ANALYZE_START)
        measurements = await self.analyze(input_path, options)
        logging.info(f"Measurements: I={measurements.input_i}, TP={measurements.input_tp}, "
                     f"LRA={measurements.input_lra}, thresh={measurements.input_thresh}, "
                     f"offset={measurements.target_offset}")

        if self.resource_monitor:
            self.resource_monitor.check_render_space(input_path, output_dir)

        outputs = []
        wav_temp = temp_output_path(output_dir, stem, "wav")
        wav_final = final_output_path(output_dir, stem, "wav")
        mp3_temp = None

        try:
            emit(PHASE_PROCESSING, RENDER_START, measurements)
            await self.render(input_path, wav_temp, options, measurements)
            emit(PHASE_PROCESSING, ENCODE_START)

            if mode.wants_wav:
                outputs.append(promote(wav_temp, wav_final))

            if mode.wants_mp3:
                emit(PHASE_ENCODING, ENCODE_START)
                source = wav_final if mode is OutputMode.BOTH else wav_temp
                mp3_temp = temp_output_path(output_dir, stem, "mp3")
                mp3_final = final_output_path(output_dir, stem, "mp3")

                await self.encode(source, mp3_temp, options)
                outputs.append(promote(mp3_temp, mp3_final))
                emit(PHASE_ENCODING, VERIFY_START)

            emit(PHASE_VERIFYING, VERIFY_START)
            self.verify(outputs, filename)
        finally:
            # The WAV intermediate of an MP3-only run, and any partial file
            # of a failed pass, must not outlive the job.
            for temp_path in (wav_temp, mp3_temp):
                if temp_path and os.path.exists(temp_path):
                    remove_quietly(temp_path)

        logging.info(f"Processing complete for: {filename}")
        return outputs

    async def analyze(self, input_path: str, options: ProcessingOptions) -> LoudnormMeasurements:
        """Run the measurement pass and parse its report."""
        result = await self.invoker.run(build_analysis_args(input_path, options))
        if not result.succeeded:
            logging.warning(f"Analysis exited with code {result.exit_code} for {os.path.basename(input_path)}")

        measurements = parse_loudnorm_json(result.stderr)
        if measurements is None:
            raise AnalysisError(os.path.basename(input_path))
        return measurements

    async def render(self, input_path: str, output_path: str, options: ProcessingOptions,
                     measurements: LoudnormMeasurements):
        """Render the normalized 24-bit WAV to output_path."""
        result = await self.invoker.run(build_render_args(input_path, output_path, options, measurements))
        if not result.succeeded:
            raise RenderError(result.tail(DIAGNOSTIC_TAIL_LENGTH), os.path.basename(input_path))
        if not os.path.exists(output_path):
            raise OutputNotCreatedError(os.path.basename(input_path), output_path)

    async def encode(self, input_path: str, output_path: str, options: ProcessingOptions):
        """Encode input_path to a CBR MP3 at output_path."""
        result = await self.invoker.run(build_encode_args(input_path, output_path, options))
        if not result.succeeded:
            raise EncodeError(result.tail(DIAGNOSTIC_TAIL_LENGTH), os.path.basename(input_path))
        if not os.path.exists(output_path):
            raise OutputNotCreatedError(os.path.basename(input_path), output_path)

    def verify(self, output_paths: List[str], filename: str):
        """Check that every promoted output is present on disk."""
        for path in output_paths:
            if not os.path.exists(path):
                raise OutputNotCreatedError(filename, path)
