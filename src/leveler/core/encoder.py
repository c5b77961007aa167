"""
FFmpeg discovery and invocation.
"""

import asyncio
import codecs
import logging
import os
import shutil
import stat
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from ..exceptions import ToolNotFoundError

FFMPEG_ENV_VAR = "LEVELER_FFMPEG"

# Read size for stderr; lines are split by hand so no line length limit applies
STDERR_CHUNK_SIZE = 64 * 1024

SYSTEM_SEARCH_PATHS = (
    "/opt/homebrew/bin/ffmpeg",
    "/usr/local/bin/ffmpeg",
    "/usr/bin/ffmpeg",
)

_ffmpeg_path: Optional[str] = None


def _is_executable(path: Optional[str]) -> bool:
    return bool(path) and os.path.isfile(path) and os.access(path, os.X_OK)


def _bundled_candidates() -> List[str]:
    """Locations a packaged build may ship its own ffmpeg binary."""
    name = "ffmpeg.exe" if sys.platform == "win32" else "ffmpeg"
    candidates = []
    # When running from a PyInstaller bundle
    if hasattr(sys, "_MEIPASS"):
        candidates.append(os.path.join(sys._MEIPASS, name))
    candidates.append(os.path.join(os.path.dirname(sys.executable), name))
    candidates.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "bin", name))
    return candidates


def _copy_bundled_to_temp(candidates: Sequence[str]) -> Optional[str]:
    """
    Copy a bundled (but non-executable) binary into a temp directory and mark
    it executable. Covers read-only or permission-stripped app bundles.
    """
    source = next((c for c in candidates if os.path.isfile(c)), None)
    if source is None:
        return None

    temp_bin = os.path.join(tempfile.gettempdir(), "leveler", "bin")
    destination = os.path.join(temp_bin, os.path.basename(source))
    if _is_executable(destination):
        return destination

    try:
        os.makedirs(temp_bin, exist_ok=True)
        shutil.copy2(source, destination)
        mode = os.stat(destination).st_mode
        os.chmod(destination, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as e:
        logging.warning(f"Could not copy bundled ffmpeg to {temp_bin}: {e}")
        return None

    return destination if _is_executable(destination) else None


def find_ffmpeg() -> Optional[str]:
    """
    Search for an ffmpeg binary without caching.

    Order: LEVELER_FFMPEG, bundled binary, temp copy of the bundled binary,
    well-known system paths, then PATH.
    """
    override = os.environ.get(FFMPEG_ENV_VAR)
    if override:
        if _is_executable(override):
            return override
        logging.warning(f"{FFMPEG_ENV_VAR} is set but not executable: {override}")

    bundled = _bundled_candidates()
    for candidate in bundled:
        if _is_executable(candidate):
            return candidate

    copied = _copy_bundled_to_temp(bundled)
    if copied:
        return copied

    for candidate in SYSTEM_SEARCH_PATHS:
        if _is_executable(candidate):
            return candidate

    return shutil.which("ffmpeg")


def locate_ffmpeg() -> str:
    """
    Return the ffmpeg path, caching the first successful lookup process-wide.

    Raises:
        ToolNotFoundError: If no usable binary is found.
    """
    global _ffmpeg_path
    if _ffmpeg_path is None:
        path = find_ffmpeg()
        if path is None:
            raise ToolNotFoundError()
        logging.info(f"Using FFmpeg at {path}")
        _ffmpeg_path = path
    return _ffmpeg_path


def reset_ffmpeg_cache():
    """Forget the cached ffmpeg path."""
    global _ffmpeg_path
    _ffmpeg_path = None


def get_ffmpeg_version(path: str) -> str:
    """Return the first line of `ffmpeg -version`, or an empty string."""
    try:
        result = subprocess.run([path, "-version"], capture_output=True, text=True, timeout=10)
    except (OSError, subprocess.TimeoutExpired) as e:
        logging.warning(f"Could not query FFmpeg version: {e}")
        return ""
    output = result.stdout or result.stderr
    return output.split("\n")[0] if output else ""


@dataclass(frozen=True)
class EncoderResult:
    """Outcome of one encoder run."""
    exit_code: int
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def tail(self, length: int = 500) -> str:
        """Last `length` characters of the diagnostic output."""
        return self.stderr[-length:]


class EncoderInvoker:
    """
    Runs ffmpeg as a child process.

    Standard output is discarded and standard error is captured in full. A
    non-zero exit status is returned as data; the caller decides whether it
    is fatal. There is no retry.
    """

    def __init__(self, locator: Callable[[], str] = locate_ffmpeg):
        """
        Initialize the invoker.

        Args:
            locator: Callable returning the ffmpeg path or raising ToolNotFoundError
        """
        self.locator = locator

    def resolve(self) -> str:
        """Resolve the executable, raising ToolNotFoundError if unavailable."""
        return self.locator()

    async def run(self, arguments: Sequence[str],
                  line_callback: Optional[Callable[[str], None]] = None) -> EncoderResult:
        """
        Run ffmpeg with the given arguments and wait for it to exit.

        Args:
            arguments: Argument vector, excluding the executable
            line_callback: Optional callable receiving each stderr line as it arrives

        Returns:
            EncoderResult with the exit code and captured stderr
        """
        ffmpeg = self.resolve()
        command = [ffmpeg, *arguments]
        logging.debug(f"Running: {subprocess.list2cmdline(command)}")

        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        lines = []
        buffer = ""
        try:
            while True:
                chunk = await process.stderr.read(STDERR_CHUNK_SIZE)
                buffer += decoder.decode(chunk, final=not chunk)
                while "\n" in buffer:
                    line, buffer = buffer.split("\n", 1)
                    self._handle_line(line + "\n", lines, line_callback)
                if not chunk:
                    break
            if buffer:
                self._handle_line(buffer, lines, line_callback)
        except BaseException:
            # Never leave ffmpeg writing into a temp file the caller is about to delete
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            raise
        finally:
            exit_code = await process.wait()

        return EncoderResult(exit_code=exit_code, stderr="".join(lines))

    @staticmethod
    def _handle_line(line: str, lines: List[str], line_callback: Optional[Callable[[str], None]]):
        lines.append(line)
        logging.debug(f"FFmpeg stderr: {line.rstrip()}")
        if line_callback:
            line_callback(line)
