"""Argument parsing for the depinject command line."""

import argparse

from .config import UNVERIFIED_POLICIES
from .models import ExecutionMode


def _add_common(parser):
    parser.add_argument("descriptor",
                        metavar="DESCRIPTOR",
                        help="Dependency descriptor (YAML or JSON)",
                        action="store", type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("-s", "--storage",
                        dest="STORAGE",
                        help="Storage root for downloads, checksums and relocated archives",
                        action="store",
                        type=str)
    parser.add_argument("-w", "--workers",
                        dest="WORKERS",
                        help="Maximum number of concurrent workers",
                        action="store",
                        type=int)
    parser.add_argument("--unverified",
                        dest="UNVERIFIED",
                        help="What to do with artifacts no checksum is available for",
                        action="store",
                        type=str.lower,
                        choices=UNVERIFIED_POLICIES)
    parser.add_argument("--no-poms",
                        dest="NO_POMS",
                        help="Do not follow dependencies declared in POM files",
                        action="store_true")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="depinject",
        description=(
            "depinject - Resolve, verify, relocate and load runtime dependencies"
        ),
        add_help=True,
    )
    commands = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    commands.required = True

    fetch = commands.add_parser("fetch",
                                help="Resolve, download, verify and relocate; print the result")
    _add_common(fetch)
    fetch.add_argument("-o", "--output",
                       dest="OUTPUT",
                       help="Path to JSON output file (default: stdout)",
                       action="store",
                       type=str)

    run = commands.add_parser("run",
                              help="Load the dependencies and call an entry point",
                              description="Options must come before ENTRY; everything after "
                                          "ENTRY is passed to the entry point.")
    _add_common(run)
    run.add_argument("entry_point",
                     metavar="ENTRY",
                     help="Entry point to call, as module:function",
                     action="store", type=str)
    run.add_argument("ENTRY_ARGS",
                     metavar="ARGS",
                     help="Arguments passed to the entry point (options after ENTRY land here)",
                     nargs=argparse.REMAINDER)
    run.add_argument("-m", "--mode",
                     dest="MODE",
                     help="Execution mode (default: appending)",
                     action="store",
                     type=str.lower,
                     choices=[m.value for m in ExecutionMode])

    return parser.parse_args(argv)
