"""
Command-line interface for Leveler.
"""

import argparse
import asyncio
import os
import signal
import sys
import logging
from datetime import datetime

from . import __version__
from .core.encoder import get_ffmpeg_version
from .core.options import MP3_BITRATES, SAMPLE_RATES, OutputMode, ProcessingOptions
from .core.pipeline import PipelineRunner
from .core.queue import ProcessingQueue
from .exceptions import DependencyError, LevelerError, get_error_summary
from .presets import DEFAULT_PRESETS_FILE, PresetStore
from .utils.progress_tracker import ProcessingTimer, create_progress_tracker
from .utils.resource_manager import ResourceMonitor


def setup_logging(quiet=False, log_dir=None):
    """
    Sets up the logging configuration for the application.

    Args:
        quiet (bool): If True, no console handler is installed.
        log_dir (str): Directory for the timestamped log file.
    """
    dt_string = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    log_dir = log_dir or os.path.join(os.path.expanduser("~"), ".leveler", "logs")
    os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        filename=os.path.join(log_dir, f'leveler_{dt_string}.log'),
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(console_handler)


def build_parser():
    defaults = ProcessingOptions()

    parser = argparse.ArgumentParser(
        prog="leveler",
        description="Leveler - two-pass loudness normalization to WAV and MP3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  leveler interview.wav
  leveler /path/to/episodes/ --target -16 --output mp3 --bitrate 192
  leveler take1.flac take2.flac --preset "WAV Only (Mastering)"
  leveler --list-presets

Outputs are written next to each input as <name>-lev-<target>LUFS.wav/.mp3
        """
    )

    parser.add_argument(
        'input_paths',
        nargs='*',
        help='Audio files or directories containing audio files'
    )
    parser.add_argument(
        '--target', '-t',
        type=float,
        default=None,
        help=f'Target integrated loudness in LUFS, -24 to -14 (default: {defaults.target_lufs_string})'
    )
    parser.add_argument(
        '--true-peak', '--tp',
        type=float,
        default=None,
        help=f'True peak ceiling in dBTP, -3.0 to -0.1 (default: {defaults.true_peak_string})'
    )
    parser.add_argument(
        '--lra',
        type=float,
        default=None,
        help=f'Loudness range target in LU (default: {defaults.lra_string})'
    )
    parser.add_argument(
        '--output', '-o',
        choices=[mode.name.lower() for mode in OutputMode],
        default=None,
        help='Output format (default: both)'
    )
    parser.add_argument(
        '--bitrate', '-b',
        type=int,
        choices=MP3_BITRATES,
        default=None,
        help=f'MP3 bitrate in kbps (default: {defaults.mp3_bitrate})'
    )
    parser.add_argument(
        '--sample-rate', '-r',
        type=int,
        choices=SAMPLE_RATES,
        default=None,
        help=f'Output sample rate in Hz (default: {defaults.sample_rate})'
    )
    parser.add_argument(
        '--no-phase-rotation',
        action='store_true',
        help='Disable the 150 Hz all-pass pre-filter'
    )
    parser.add_argument(
        '--preset', '-p',
        help='Start from a named preset; explicit options override it'
    )
    parser.add_argument(
        '--list-presets',
        action='store_true',
        help='List available presets and exit'
    )
    parser.add_argument(
        '--save-preset',
        metavar='NAME',
        help='Save the effective options as a user preset'
    )
    parser.add_argument(
        '--presets-file',
        default=DEFAULT_PRESETS_FILE,
        help=f'User preset file (default: {DEFAULT_PRESETS_FILE})'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Reduce output verbosity'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )
    parser.add_argument(
        '--log-dir',
        help='Directory for log files (default: ~/.leveler/logs)'
    )
    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'Leveler {__version__}'
    )
    return parser


def resolve_options(args, preset_store):
    """Combine the preset (if any) with explicit command line options."""
    base = preset_store.find(args.preset).options if args.preset else ProcessingOptions()
    data = base.to_dict()

    overrides = {
        'target_lufs': args.target,
        'true_peak': args.true_peak,
        'lra': args.lra,
        'output_mode': args.output,
        'mp3_bitrate': args.bitrate,
        'sample_rate': args.sample_rate,
    }
    data.update({key: value for key, value in overrides.items() if value is not None})
    if args.no_phase_rotation:
        data['phase_rotation'] = False

    return ProcessingOptions.from_dict(data)


def print_presets(preset_store):
    for preset in preset_store.all_presets:
        kind = "built-in" if preset_store.is_built_in(preset) else "user"
        print(f"{preset.name} ({kind})")
        print(f"    {preset.options}")


async def run_batch(queue, progress_tracker):
    """Run every pending job; Ctrl-C stops after the current job."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, queue.cancel_batch)
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers on Windows; KeyboardInterrupt ends the run
        pass

    unsubscribe = queue.subscribe(progress_tracker.handle_event)
    try:
        if not queue.start_batch():
            return queue.get_result()
        return await queue.wait()
    finally:
        unsubscribe()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def main(argv=None):
    """Main entry point for the CLI application."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(quiet=args.quiet, log_dir=args.log_dir)
        preset_store = PresetStore(args.presets_file)

        if args.list_presets:
            print_presets(preset_store)
            return 0

        options = resolve_options(args, preset_store)

        if args.save_preset:
            preset_store.save_preset(args.save_preset, options)
            if not args.quiet:
                print(f"Saved preset: {args.save_preset}")
            if not args.input_paths:
                return 0

        if not args.input_paths:
            parser.error("no input files given")

        queue = ProcessingQueue(
            runner=PipelineRunner(resource_monitor=ResourceMonitor()),
            options=options,
            preset_store=preset_store,
        )
        queue.add_paths(args.input_paths)
        if not queue.pending_jobs:
            print("No supported audio files found.")
            return 1

        ffmpeg = queue.runner.check_tool()
        logging.info(f"FFmpeg: {get_ffmpeg_version(ffmpeg)}")

        if not args.quiet:
            print(f"Processing {len(queue.pending_jobs)} file(s) with {options}")

        progress_tracker = create_progress_tracker(quiet=args.quiet, disable_bars=args.no_progress)
        timer = ProcessingTimer()
        timer.start()

        result = asyncio.run(run_batch(queue, progress_tracker))

        progress_tracker.print_summary(result.summary, timer.stop())
        if queue.batch_errors:
            logging.info(get_error_summary(queue.batch_errors))
        for job in queue.failed_jobs:
            print(f"[FAIL] {job.filename}: {job.error_message}")
        if result.output_directory and not args.quiet:
            print(f"Output directory: {result.output_directory}")

        return 0 if result.failed_count == 0 else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130
    except DependencyError as e:
        print(f"\nDependency Error: {e.get_user_message()}")
        return 1
    except LevelerError as e:
        print(f"\nError: {e.get_user_message()}")
        return 1
    except Exception as e:
        print(f"\nUnexpected error: {str(e)}")
        logging.error(f'Unexpected error: {str(e)}', exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
