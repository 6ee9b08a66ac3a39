"""Logging configuration using Loguru.

Call sites log with ``logger.info(f"...", extra={"user_id": ...})``. Loguru
keeps such keyword arguments under ``record["extra"]["extra"]``; the patcher
installed here lifts them to the top level so file sinks serialize
``user_id`` and friends as plain fields and the console shows them inline.
"""

import sys
from pathlib import Path

from loguru import logger

# Fields rendered on the console line, in this order
CONTEXT_KEYS = ("user_id", "operation", "snapshot_id", "claim_id", "team_id")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    "<dim>{extra[context]}</dim>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}{extra[context]}"


def lift_call_context(record) -> None:
    """Promote call-site ``extra`` fields and build the console context suffix."""
    extra = record["extra"]
    call_context = extra.pop("extra", None)
    if isinstance(call_context, dict):
        extra.update(call_context)

    shown = " ".join(f"{key}={extra[key]}" for key in CONTEXT_KEYS if extra.get(key) is not None)
    extra["context"] = f" [{shown}]" if shown else ""


def setup_logging(
    level: str = "INFO",
    log_to_file: bool = False,
    log_dir: str = "logs",
    file_rotation: str = "10 MB",
    file_retention: str = "7 days",
    compression: str | None = "zip",
    serialize: bool = True,
) -> None:
    """Configure Loguru with a console sink and an optional rotating JSON file sink."""
    logger.remove()
    logger.configure(patcher=lift_call_context)

    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=True,
        serialize=False,
    )

    if log_to_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "strata_{time:YYYY-MM-DD}.log",
            level=level,
            format=FILE_FORMAT,
            rotation=file_rotation,
            retention=file_retention,
            compression=compression,
            serialize=serialize,
            enqueue=True,
        )


def get_logger(name: str):
    """Get a logger instance for a module."""
    return logger.bind(module=name)
