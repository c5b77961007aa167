"""
Resource checks run before writing large intermediate files.
"""

import os
import logging
from pathlib import Path
from typing import Dict, Union

import psutil

from ..exceptions import ResourceError

# A 24-bit PCM render is far larger than a compressed source
RENDER_SIZE_FACTOR = 10


class ResourceMonitor:
    """Checks free disk space in output directories."""

    def __init__(self, disk_space_margin_mb: int = 100):
        """
        Initialize resource monitor.

        Args:
            disk_space_margin_mb: Safety margin for disk space checks in MB
        """
        self.disk_space_margin_mb = disk_space_margin_mb
        self.logger = logging.getLogger(__name__)

    def get_disk_space(self, path: Union[str, Path]) -> Dict[str, int]:
        """Get disk space information for a given path."""
        path = Path(path)
        if not path.exists():
            path = path.parent

        usage = psutil.disk_usage(str(path))
        return {
            'total_mb': usage.total // (1024 * 1024),
            'used_mb': usage.used // (1024 * 1024),
            'free_mb': usage.free // (1024 * 1024),
        }

    def check_disk_space(self, path: Union[str, Path], required_mb: int) -> None:
        """
        Check if sufficient disk space is available.

        Raises:
            ResourceError: If free space is below required_mb plus the margin.
        """
        try:
            free_mb = self.get_disk_space(path)['free_mb']
        except OSError as e:
            self.logger.warning(f"Could not get disk space for {path}: {e}")
            return

        total_required_mb = required_mb + self.disk_space_margin_mb
        if free_mb < total_required_mb:
            raise ResourceError(
                f"Insufficient disk space: {free_mb}MB available, "
                f"{total_required_mb}MB required (including {self.disk_space_margin_mb}MB margin)",
                "disk_space",
                required=f"{total_required_mb}MB",
                available=f"{free_mb}MB"
            )

        self.logger.debug(f"Disk space check passed: {free_mb}MB available, {total_required_mb}MB required")

    def estimate_render_mb(self, input_file: str) -> int:
        """Rough size of the PCM render of an input file."""
        try:
            size_mb = os.path.getsize(input_file) / (1024 * 1024)
        except OSError as e:
            self.logger.warning(f"Could not estimate requirements for {input_file}: {e}")
            return 0
        return int(size_mb * RENDER_SIZE_FACTOR)

    def check_render_space(self, input_file: str, output_dir: str) -> None:
        """Check that output_dir can hold the render of input_file."""
        self.check_disk_space(output_dir, self.estimate_render_mb(input_file))
