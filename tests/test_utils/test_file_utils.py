"""
Tests for file utility functions.
"""

import pytest
import os
from unittest.mock import patch

from leveler.exceptions import ValidationError
from leveler.utils.file_utils import (
    natural_keys,
    is_audio_file,
    collect_input_files,
    output_stem,
    final_output_path,
    temp_output_path,
    promote,
    remove_quietly,
    get_file_size_mb
)


class TestNaturalKeys:
    """Test cases for natural_keys function."""

    def test_natural_keys_numbers(self):
        """Test natural sorting with numbers."""
        test_strings = ['ep1.wav', 'ep10.wav', 'ep2.wav', 'ep20.wav']
        sorted_strings = sorted(test_strings, key=natural_keys)

        expected = ['ep1.wav', 'ep2.wav', 'ep10.wav', 'ep20.wav']
        assert sorted_strings == expected

    def test_natural_keys_no_numbers(self):
        """Test natural sorting with no numbers."""
        test_strings = ['zebra.wav', 'apple.wav', 'banana.wav']
        sorted_strings = sorted(test_strings, key=natural_keys)

        assert sorted_strings == ['apple.wav', 'banana.wav', 'zebra.wav']


class TestIsAudioFile:
    """Test cases for is_audio_file function."""

    @pytest.mark.parametrize("name", ["a.wav", "b.MP3", "c.aiff", "d.flac", "e.m4a", "f.opus"])
    def test_supported(self, name):
        assert is_audio_file(name)

    @pytest.mark.parametrize("name", ["notes.txt", "cover.jpg", "wav", "a.wav.bak"])
    def test_unsupported(self, name):
        assert not is_audio_file(name)


class TestCollectInputFiles:
    """Test cases for collect_input_files function."""

    def test_directory_natural_order(self, sample_audio_files, temp_dir):
        """Directory contents are filtered and naturally sorted."""
        with open(os.path.join(temp_dir, "readme.txt"), "w") as f:
            f.write("x")

        files = collect_input_files([temp_dir])

        assert [os.path.basename(f) for f in files] == ["episode 1.wav", "episode 2.wav", "episode 10.flac"]

    def test_explicit_files_keep_given_order(self, sample_audio_files):
        files = collect_input_files([sample_audio_files[2], sample_audio_files[0]])

        assert files == [sample_audio_files[2], sample_audio_files[0]]

    def test_unsupported_file_skipped(self, temp_dir):
        path = os.path.join(temp_dir, "notes.txt")
        with open(path, "w") as f:
            f.write("x")

        assert collect_input_files([path]) == []

    def test_missing_path_raises(self, temp_dir):
        with pytest.raises(ValidationError) as exc_info:
            collect_input_files([os.path.join(temp_dir, "missing.wav")])

        assert exc_info.value.validation_type == "path"


class TestOutputNaming:
    """Test cases for output and temp file names."""

    def test_output_stem(self):
        assert output_stem("/audio/Show Ep 3.flac", "-18") == "Show Ep 3-lev--18LUFS"
        assert output_stem("take.wav", "-16.5") == "take-lev--16.5LUFS"

    def test_final_output_path(self):
        assert final_output_path("/audio", "take-lev--18LUFS", "mp3") == os.path.join("/audio", "take-lev--18LUFS.mp3")

    def test_temp_output_path_is_hidden_and_unique(self):
        first = temp_output_path("/audio", "take-lev--18LUFS", "wav")
        second = temp_output_path("/audio", "take-lev--18LUFS", "wav")

        assert first != second
        name = os.path.basename(first)
        assert name.startswith(".take-lev--18LUFS.part.")
        assert name.endswith(".wav")
        assert len(name.split(".")[-2]) == 8
        assert os.path.dirname(first) == "/audio"


class TestPromoteAndRemove:
    """Test cases for moving and cleaning up output files."""

    def test_promote_replaces_existing(self, temp_dir):
        temp_path = os.path.join(temp_dir, ".x.part.abcd1234.wav")
        final_path = os.path.join(temp_dir, "x.wav")
        with open(temp_path, "w") as f:
            f.write("new")
        with open(final_path, "w") as f:
            f.write("old")

        assert promote(temp_path, final_path) == final_path

        assert not os.path.exists(temp_path)
        with open(final_path) as f:
            assert f.read() == "new"

    def test_remove_quietly(self, temp_dir):
        path = os.path.join(temp_dir, "stray.wav")
        with open(path, "w") as f:
            f.write("x")

        assert remove_quietly(path) is True
        assert not os.path.exists(path)
        assert remove_quietly(path) is False

    def test_remove_quietly_permission_error(self):
        with patch("leveler.utils.file_utils.os.remove", side_effect=PermissionError("denied")):
            assert remove_quietly("/locked.wav") is False


class TestGetFileSizeMb:
    """Test cases for get_file_size_mb function."""

    def test_get_file_size_mb(self, temp_dir):
        path = os.path.join(temp_dir, "big.wav")
        with open(path, "wb") as f:
            f.write(b"\x00" * (1024 * 1024))

        assert get_file_size_mb(path) == 1.0

    def test_missing_file(self):
        assert get_file_size_mb("/nonexistent/file.wav") == 0.0
