"""
Logging configuration for the D64 Disk Image Utility.

The core modules log through child loggers of ``d64_image_util``; the CLI
picks the level (quiet, normal, verbose) and an optional log file that
receives a copy of every message, e.g. a verify/repair report.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, TextIO

QUIET = logging.WARNING
NORMAL = logging.INFO
VERBOSE = logging.DEBUG

logger = logging.getLogger('d64_image_util')


class ColorFormatter(logging.Formatter):
    """
    Formatter that colours the level of a record on a terminal.

    Plain text is used when the stream is not a TTY.
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str | None = None, stream: TextIO | None = None,
                 use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors and _is_tty(stream)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelname)
        if self.use_colors and color:
            return f"{color}{message}{self.RESET}"
        return message


def _is_tty(stream: TextIO | None) -> bool:
    if stream is None:
        return False
    isatty = getattr(stream, 'isatty', None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # closed stream
        return False


def _default_format(level: int) -> str:
    if level <= logging.DEBUG:
        return '%(levelname)s: %(name)s: %(message)s'
    return '%(message)s'


def setup_logging(
    level: int = NORMAL,
    stream: TextIO | None = None,
    use_colors: bool = True,
    format_string: str | None = None
) -> None:
    """
    Configure the package logger.

    Args:
        level: Logging level (QUIET, NORMAL, or VERBOSE)
        stream: Console stream (defaults to stderr)
        use_colors: Colour level names when the stream is a terminal
        format_string: Custom console format (optional)
    """
    if stream is None:
        stream = sys.stderr
    if format_string is None:
        format_string = _default_format(level)

    logger.handlers.clear()

    console = logging.StreamHandler(stream)
    console.setFormatter(ColorFormatter(format_string, stream, use_colors))
    logger.addHandler(console)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get the package logger or a child logger for one module.

    Args:
        name: Module name, e.g. 'bam' (optional)
    """
    if name is None:
        return logger
    return logger.getChild(name)


@contextmanager
def log_to_file(path: str) -> Iterator[logging.Handler]:
    """
    Temporarily copy package log records, debug included, into ``path``.

    Console handlers keep the current level. Used for verify reports.
    """
    previous = logger.level
    console = [h for h in logger.handlers if h.level == logging.NOTSET]
    for h in console:
        h.setLevel(previous)

    handler = logging.FileHandler(path, mode='w', encoding='utf-8')
    handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        handler.close()
        logger.setLevel(previous)
        for h in console:
            h.setLevel(logging.NOTSET)


setup_logging()
