"""depinject command line: ``fetch`` pre-warms the cache, ``run`` loads and calls."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from .args import parse_args
from .common.logging_utils import configure_logging, extra_context, is_debug_enabled
from .config import load_settings
from .constants import ExitCodes
from .descriptor import load_descriptor
from .errors import (
    DepInjectError,
    DescriptorError,
    DownloadFailed,
    InjectionFailed,
    RelocationFailed,
    ResolutionFailed,
    VerificationFailed,
)
from .pipeline import Pipeline, describe

logger = logging.getLogger(__name__)

_EXIT_CODES = (
    (DescriptorError, ExitCodes.FILE_ERROR),
    (ResolutionFailed, ExitCodes.CONNECTION_ERROR),
    (DownloadFailed, ExitCodes.CONNECTION_ERROR),
    (VerificationFailed, ExitCodes.INTEGRITY_ERROR),
    (RelocationFailed, ExitCodes.RELOCATION_ERROR),
    (InjectionFailed, ExitCodes.INJECTION_ERROR),
)


def exit_code_for(exc: DepInjectError) -> ExitCodes:
    for error_type, code in _EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return ExitCodes.FILE_ERROR


def _setup_logging(args: Any) -> None:
    """Configure logging based on CLI arguments."""
    if getattr(args, "LOG_LEVEL", None):
        os.environ["DEPINJECT_LOG_LEVEL"] = str(args.LOG_LEVEL).upper()
    configure_logging()

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def _overrides(args: Any) -> Dict[str, Any]:
    return {
        "storage_root": getattr(args, "STORAGE", None),
        "max_workers": getattr(args, "WORKERS", None),
        "unverified_policy": getattr(args, "UNVERIFIED", None),
        "follow_poms": False if getattr(args, "NO_POMS", False) else None,
        "mode": getattr(args, "MODE", None),
    }


def _write_output(payload: Any, path: Optional[str] = None) -> None:
    text = json.dumps(payload, indent=2)
    if not path:
        sys.stdout.write(text + "\n")
        return
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text + "\n")
    logger.info("JSON file has been successfully exported at: %s", path)


def _fetch(args: Any, pipeline: Pipeline, dependencies) -> int:
    prepared = pipeline.prepare(dependencies)
    _write_output(describe(prepared), getattr(args, "OUTPUT", None))
    return ExitCodes.SUCCESS.value


def _run(args: Any, pipeline: Pipeline, dependencies) -> int:
    handle = pipeline.run(dependencies)
    result = handle.run(args.entry_point, *(args.ENTRY_ARGS or []))
    if isinstance(result, int) and not isinstance(result, bool):
        return result
    return ExitCodes.SUCCESS.value


_COMMANDS = {
    "fetch": _fetch,
    "run": _run,
}


def main(argv=None) -> None:
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND),
        )

    try:
        settings = load_settings(args.CONFIG, _overrides(args))
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    try:
        dependencies = load_descriptor(args.descriptor)
        with Pipeline(settings) as pipeline:
            code = _COMMANDS[args.COMMAND](args, pipeline, dependencies)
    except DepInjectError as exc:
        logger.error("%s", exc)
        sys.exit(exit_code_for(exc).value)
    sys.exit(code)
