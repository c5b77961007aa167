"""
File utility functions for output naming and crash-safe output handling.
"""

import os
import re
import uuid
import logging
from typing import Iterable, List, Union

from ..exceptions import ValidationError

SUPPORTED_EXTENSIONS = ('.wav', '.mp3', '.aiff', '.aif', '.flac', '.m4a', '.mp4', '.ogg', '.opus')


def natural_keys(text: str) -> List[Union[int, str]]:
    """
    Natural sorting key function.

    Args:
        text: Text to generate natural sort key for

    Returns:
        List of integers and strings for natural sorting
    """
    def atoi(text):
        return int(text) if text.isdigit() else text
    return [atoi(c) for c in re.split(r'(\d+)', text)]


def is_audio_file(file_path: str) -> bool:
    """Check whether a path has a supported audio extension."""
    return file_path.lower().endswith(SUPPORTED_EXTENSIONS)


def collect_input_files(input_paths: Iterable[str]) -> List[str]:
    """
    Expand files and directories into a list of supported audio files.

    Directories contribute their supported files in natural order. Unsupported
    files are skipped with a warning.

    Raises:
        ValidationError: If a path does not exist.
    """
    input_files = []

    for input_path in input_paths:
        if os.path.isdir(input_path):
            folder_files = sorted(
                (os.path.join(input_path, f) for f in os.listdir(input_path) if is_audio_file(f)),
                key=natural_keys
            )
            logging.info(f"Found {len(folder_files)} audio files in directory: {input_path}")
            input_files.extend(folder_files)
        elif os.path.isfile(input_path):
            if is_audio_file(input_path):
                input_files.append(input_path)
            else:
                logging.warning(f"Skipping unsupported file format: {input_path}")
        else:
            raise ValidationError("Path does not exist", "path", input_path)

    return input_files


def output_stem(input_path: str, target_lufs_string: str) -> str:
    """
    Derive the output file stem for an input file.

    >>> output_stem('/music/take1.flac', '-18')
    'take1-lev--18LUFS'
    """
    stem = os.path.splitext(os.path.basename(input_path))[0]
    return f"{stem}-lev-{target_lufs_string}LUFS"


def final_output_path(directory: str, stem: str, extension: str) -> str:
    """Public path of a finished output file."""
    return os.path.join(directory, f"{stem}.{extension}")


def temp_output_path(directory: str, stem: str, extension: str) -> str:
    """
    Hidden staging path for an output that is still being written.

    The random suffix keeps concurrent runs and retried jobs from sharing a
    partial file; the leading dot keeps it distinct from any final name.
    """
    return os.path.join(directory, f".{stem}.part.{uuid.uuid4().hex[:8]}.{extension}")


def promote(temp_path: str, final_path: str) -> str:
    """
    Move a finished temp file to its public name.

    Both paths live in the same directory, so os.replace is an atomic rename.
    An existing file with the final name is overwritten.
    """
    os.replace(temp_path, final_path)
    logging.info(f"Created {os.path.basename(final_path)}")
    return final_path


def remove_quietly(file_path: str) -> bool:
    """
    Best-effort removal of a stray file.

    Returns:
        bool: True if the file was removed
    """
    try:
        os.remove(file_path)
        logging.debug(f"Removed {file_path}")
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logging.warning(f"Could not remove {file_path}: {e}")
        return False


def get_file_size_mb(file_path: str) -> float:
    """Size of a file in megabytes, 0.0 if it cannot be read."""
    try:
        return os.path.getsize(file_path) / (1024 * 1024)
    except OSError:
        return 0.0
