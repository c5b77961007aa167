"""
Pytest configuration and fixtures for Leveler tests.
"""

import pytest
import os
import tempfile
import shutil

from leveler.core.encoder import EncoderInvoker, EncoderResult, reset_ffmpeg_cache

LOUDNORM_REPORT = """
[Parsed_loudnorm_1 @ 0x7f8b4c004a00]
{
	"input_i" : "-27.61",
	"input_tp" : "-4.47",
	"input_lra" : "18.06",
	"input_thresh" : "-39.20",
	"output_i" : "-16.58",
	"output_tp" : "-1.50",
	"output_lra" : "14.78",
	"output_thresh" : "-27.71",
	"normalization_type" : "dynamic",
	"target_offset" : "0.58"
}
"""

ANALYSIS_STDERR = (
    "Input #0, wav, from 'episode.wav':\n"
    "  Duration: 00:00:12.00, bitrate: 1411 kb/s\n"
    "  Stream #0:0: Audio: pcm_s16le, 44100 Hz, stereo, s16, 1411 kb/s\n"
    + LOUDNORM_REPORT
)


class FakeEncoder(EncoderInvoker):
    """
    Stands in for ffmpeg.

    Analysis runs (`-f null`) return ANALYSIS_STDERR; render and encode runs
    create the output file named last in the argument vector. Per-input
    behaviour can be overridden by file basename.
    """

    def __init__(self):
        super().__init__(locator=lambda: "/usr/bin/ffmpeg")
        self.calls = []
        self.analysis_output = {}
        self.render_failures = {}
        self.encode_failures = {}
        self.skip_output = set()
        self.before_run = None

    @staticmethod
    def stage_of(arguments):
        if "null" in arguments:
            return "analyze"
        if "pcm_s24le" in arguments:
            return "render"
        return "encode"

    async def run(self, arguments, line_callback=None):
        arguments = list(arguments)
        self.calls.append(arguments)
        if self.before_run:
            await self.before_run(arguments)

        stage = self.stage_of(arguments)
        source = os.path.basename(arguments[arguments.index("-i") + 1])
        output = arguments[-1]

        if stage == "analyze":
            return EncoderResult(0, self.analysis_output.get(source, ANALYSIS_STDERR))

        failures = self.render_failures if stage == "render" else self.encode_failures
        if source in failures:
            # A failing ffmpeg can leave a truncated file behind
            with open(output, "wb") as f:
                f.write(b"partial")
            return EncoderResult(1, failures[source])

        if stage not in self.skip_output:
            with open(output, "wb") as f:
                f.write(b"RIFF" if stage == "render" else b"ID3")
        return EncoderResult(0, "size=     123kB time=00:00:12.00 bitrate= 84.0kbits/s\n")

    def stages(self):
        return [self.stage_of(call) for call in self.calls]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def sample_audio_files(temp_dir):
    """Create placeholder audio files; the fake encoder never reads them."""
    files = []
    for name in ("episode 1.wav", "episode 2.wav", "episode 10.flac"):
        filepath = os.path.join(temp_dir, name)
        with open(filepath, 'wb') as f:
            f.write(b'RIFF' + b'\x00' * 100)
        files.append(filepath)
    return files


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture(autouse=True)
def clean_ffmpeg_cache():
    reset_ffmpeg_cache()
    yield
    reset_ffmpeg_cache()


@pytest.fixture
def analysis_stderr():
    return ANALYSIS_STDERR
