"""
Tests for the command-line interface.
"""

import os

import pytest
from unittest.mock import patch

from leveler import cli
from leveler.core.encoder import EncoderInvoker
from leveler.core.options import OutputMode
from leveler.core.pipeline import PipelineRunner
from leveler.exceptions import ToolNotFoundError
from leveler.presets import PresetStore


@pytest.fixture
def cli_env(temp_dir, fake_encoder):
    """Route the CLI at the fake encoder and keep logs and presets in temp_dir."""
    base_args = [
        "--log-dir", os.path.join(temp_dir, "logs"),
        "--presets-file", os.path.join(temp_dir, "presets.json"),
    ]
    with patch("leveler.cli.PipelineRunner", side_effect=lambda **kwargs: PipelineRunner(fake_encoder)), \
            patch("leveler.cli.get_ffmpeg_version", return_value="ffmpeg version 6.1"):
        yield base_args


class TestResolveOptions:
    """Test cases for combining presets and flags."""

    def parse(self, temp_dir, *argv):
        args = cli.build_parser().parse_args(list(argv))
        return cli.resolve_options(args, PresetStore(os.path.join(temp_dir, "presets.json")))

    def test_defaults(self, temp_dir):
        options = self.parse(temp_dir, "a.wav")

        assert options.target_lufs == -18
        assert options.output_mode is OutputMode.BOTH
        assert options.phase_rotation is True

    def test_flags(self, temp_dir):
        options = self.parse(temp_dir, "a.wav", "--target", "-16", "--output", "mp3",
                             "--bitrate", "192", "--sample-rate", "48000", "--no-phase-rotation")

        assert options.target_lufs == -16
        assert options.output_mode is OutputMode.MP3
        assert options.mp3_bitrate == 192
        assert options.sample_rate == 48000
        assert options.phase_rotation is False

    def test_flags_override_preset(self, temp_dir):
        options = self.parse(temp_dir, "a.wav", "--preset", "podcast loud", "--target", "-20")

        assert options.target_lufs == -20
        assert options.mp3_bitrate == 192

    def test_invalid_bitrate_rejected_by_parser(self, temp_dir):
        with pytest.raises(SystemExit):
            self.parse(temp_dir, "a.wav", "--bitrate", "320")


class TestMain:
    """Test cases for main()."""

    def test_list_presets(self, cli_env, capsys):
        assert cli.main(cli_env + ["--list-presets"]) == 0

        out = capsys.readouterr().out
        assert "Podcast Standard (built-in)" in out
        assert "WAV Only (Mastering) (built-in)" in out

    def test_save_preset_without_inputs(self, cli_env, temp_dir):
        assert cli.main(cli_env + ["--quiet", "--target", "-23", "--save-preset", "Broadcast"]) == 0

        store = PresetStore(os.path.join(temp_dir, "presets.json"))
        assert store.find("Broadcast").options.target_lufs == -23

    def test_no_inputs_is_usage_error(self, cli_env):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(cli_env)

        assert exc_info.value.code == 2

    def test_processes_directory(self, cli_env, sample_audio_files, temp_dir, capsys):
        exit_code = cli.main(cli_env + ["--no-progress", temp_dir])

        assert exit_code == 0
        names = os.listdir(temp_dir)
        for stem in ("episode 1", "episode 2", "episode 10"):
            assert f"{stem}-lev--18LUFS.wav" in names
            assert f"{stem}-lev--18LUFS.mp3" in names
        out = capsys.readouterr().out
        assert "3 files processed successfully" in out

    def test_failed_job_sets_exit_code(self, cli_env, sample_audio_files, fake_encoder, capsys):
        fake_encoder.render_failures["episode 2.wav"] = "Conversion failed!"

        exit_code = cli.main(cli_env + ["--no-progress"] + sample_audio_files[:2])

        assert exit_code == 1
        out = capsys.readouterr().out
        assert "[FAIL] episode 2.wav: Processing failed: Conversion failed!" in out
        assert "1 file processed successfully, 1 failed" in out

    def test_no_supported_files(self, cli_env, temp_dir, capsys):
        path = os.path.join(temp_dir, "notes.txt")
        with open(path, "w") as f:
            f.write("x")

        assert cli.main(cli_env + [path]) == 1
        assert "No supported audio files found." in capsys.readouterr().out

    def test_missing_ffmpeg(self, temp_dir, sample_audio_files, capsys):
        def missing():
            raise ToolNotFoundError()

        argv = ["--log-dir", os.path.join(temp_dir, "logs"),
                "--presets-file", os.path.join(temp_dir, "presets.json"),
                sample_audio_files[0]]
        runner = PipelineRunner(EncoderInvoker(locator=missing))
        with patch("leveler.cli.PipelineRunner", return_value=runner):
            assert cli.main(argv) == 1

        out = capsys.readouterr().out
        assert "Dependency Error: FFmpeg not found" in out
        assert "Error Code: DEP001" in out

    def test_invalid_option_value(self, cli_env, sample_audio_files, capsys):
        assert cli.main(cli_env + ["--target", "-30", sample_audio_files[0]]) == 1

        assert "Validation failed (target_lufs)" in capsys.readouterr().out
