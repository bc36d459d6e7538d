import logging
from collections.abc import Callable
from typing import Any

# Library logging: silent unless the caller opts in
logger = logging.getLogger("gitspark")
logger.addHandler(logging.NullHandler())

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Get the gitspark logger, or one of its children.

    Args:
        name: Child logger name. If None, returns the main gitspark logger,
              otherwise returns ``gitspark.<name>``.

    Returns:
        logging.Logger: The requested logger instance.
    """
    if name is None:
        return logger
    return logger.getChild(name)


def set_log_level(level: int | str) -> None:
    """Set the logging level for the gitspark library.

    Args:
        level: A level name (e.g. 'INFO') or number (e.g. logging.INFO).
    """
    logger.setLevel(level)


def add_stream_handler(
    level: int | str = logging.INFO,
    format_string: str = DEFAULT_FORMAT,
    **handler_kwargs: Any,
) -> None:
    """Attach a stream handler to the gitspark logger.

    Args:
        level: The logging level for the handler. Defaults to INFO.
        format_string: The format string for log messages.
        **handler_kwargs: Passed through to ``logging.StreamHandler``.
    """
    if any(type(h) is logging.StreamHandler for h in logger.handlers):
        logger.warning("StreamHandler already exists for gitspark logger.")
        return

    _attach(logging.StreamHandler(**handler_kwargs), level, format_string)


def add_file_handler(
    filename: str,
    level: int | str = logging.INFO,
    format_string: str = DEFAULT_FORMAT,
    **handler_kwargs: Any,
) -> None:
    """Attach a file handler to the gitspark logger.

    Args:
        filename: Path of the log file.
        level: The logging level for the handler. Defaults to INFO.
        format_string: The format string for log messages.
        **handler_kwargs: Passed through to ``logging.FileHandler``.
    """
    handler = logging.FileHandler(filename, **handler_kwargs)
    if any(isinstance(h, logging.FileHandler) and h.baseFilename == handler.baseFilename for h in logger.handlers):
        handler.close()
        logger.warning(f"FileHandler for {filename} already exists for gitspark logger.")
        return

    _attach(handler, level, format_string)


def _attach(handler: logging.Handler, level: int | str, format_string: str) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(handler)


def progress_logger(every: int = 1000, level: int = logging.INFO) -> Callable[[str, int, int | None], None]:
    """Build a ``progress_callback`` that reports analysis progress through the gitspark logger.

    Commit progress is logged every ``every`` commits; each finalization step is always logged.
    """

    def report(phase: str, current: int, total: int | None) -> None:
        if phase == "commits" and current % every:
            return
        of = f"/{total}" if total is not None else ""
        logger.log(level, f"{phase}: {current}{of}")

    return report


def remove_all_handlers() -> None:
    """Remove every handler except the default NullHandler."""
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


__all__ = [
    "logger",
    "get_logger",
    "set_log_level",
    "add_stream_handler",
    "add_file_handler",
    "remove_all_handlers",
    "progress_logger",
]
