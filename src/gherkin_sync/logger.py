import json
import logging
import os
import sys

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object on a single line.

    Keys: ``ts``, ``level``, ``logger``, ``msg``, plus ``exc`` with the
    formatted traceback when the record carries exception info.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(debug_format: str, verbose: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=DATE_FORMAT)
    name = " %(name)s" if verbose else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=DATE_FORMAT
    )


def _resolve_level(debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    name = os.getenv("LOG_LEVEL") or level or "WARNING"
    return getattr(logging, name.upper(), logging.WARNING)


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure the root logger for a sync run.

    Records go to stderr, which leaves stdout to the progress lines and the
    final report.  A log file, when given, receives the same records with
    the logger name included.

    Args:
        debug: Force DEBUG, ignoring LOG_LEVEL and *level*.
        log_file: Append records to this file (falls back to LOG_FILE).
        debug_format: "text" or "json".
        level: Level name from the config file; LOG_LEVEL wins over it.

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING (default) or ERROR.
        LOG_FILE: Log file path when *log_file* is not given.
    """
    log_level = _resolve_level(debug, level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(debug_format, verbose=False))
    handlers: list[logging.Handler] = [console]

    target = log_file or os.getenv("LOG_FILE")
    if target:
        file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
        file_handler.setFormatter(_formatter(debug_format, verbose=True))
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # HTTP library chatter only shows up in debug runs.
    if log_level != logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
