"""Console logging for cosmos-yield.

Records go to stderr; stdout is reserved for the feed itself so that
``--format json`` output can be piped.
"""

import logging
import sys

# Define TRACE level (lower than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVEL_COLORS = {
    "TRACE": "\033[90m",
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"
BOLD = "\033[1m"

# Third-party loggers that drown out our own records below INFO
NOISY_LOGGERS = ("urllib3", "backoff")

# Attributes every LogRecord carries; anything else arrived via ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> dict[str, object]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class FeedFormatter(logging.Formatter):
    """Formatter that colours the level name and appends ``extra`` fields.

    ``log.info("Starting feed", extra={"sources": [...]})`` renders as
    ``... Starting feed [sources=[...]]``.
    """

    def __init__(self, fmt: str, datefmt: str | None = None, use_color: bool = True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if self.use_color and levelname in LEVEL_COLORS:
            record.levelname = f"{LEVEL_COLORS[levelname]}{BOLD}{levelname}{RESET}"
        try:
            result = super().format(record)
        finally:
            record.levelname = levelname

        extras = _extra_fields(record)
        if extras:
            rendered = " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
            result = f"{result} [{rendered}]"
        return result


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root logging for the CLI.

    ``log_level`` accepts the standard level names plus TRACE. At DEBUG the
    urllib3 and backoff loggers are held at WARNING; TRACE lets them through.
    """
    name = log_level.upper()
    level = TRACE if name == "TRACE" else getattr(logging, name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        FeedFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            use_color=sys.stderr.isatty(),
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(TRACE if level <= TRACE else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)
