"""
Section banners that frame each batch run in the log.
"""

import os
import logging
import platform


def log_section(title: str):
    separator = "=" * 60
    logging.info(separator)
    logging.info(title)
    logging.info(separator)


def log_run_start():
    from .. import __version__

    log_section(f"Run Start - PID {os.getpid()}")
    logging.info(f"Leveler Version: {__version__}")
    logging.info(f"Platform: {platform.platform()}")


def log_run_end():
    log_section(f"Run End - PID {os.getpid()}")
