import json
import logging
import os
import sys


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured sync logs.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    A ``request_id`` field is added when the record was emitted through a
    ``RequestLogAdapter``; exception info is included as an "exc" field.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RequestLogAdapter(logging.LoggerAdapter):
    """Prefix every message with ``[request_id]`` for one sync run."""

    def process(self, msg, kwargs):
        request_id = self.extra.get("request_id", "-")
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("request_id", request_id)
        kwargs["extra"] = extra
        return f"[{request_id}] {msg}", kwargs


def request_logger(
    logger: logging.Logger, request_id: str
) -> RequestLogAdapter:
    """Return *logger* wrapped so its lines carry *request_id*."""
    return RequestLogAdapter(logger, {"request_id": request_id})


_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=_DATEFMT
    )


def setup_logging(
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure root logging for one CLI invocation.

    Level resolution: ``debug=True`` forces DEBUG, then the ``LOG_LEVEL``
    env var, then *level* from the config file, then INFO. Unknown level
    names fall back to INFO.

    Args:
        debug: Force DEBUG.
        log_file: Extra log file; ``LOG_FILE`` is used when omitted.
        debug_format: "text" (default) or "json" (one object per line).
        level: Level name from the config file.
    """
    if debug:
        log_level = logging.DEBUG
    else:
        name = os.getenv("LOG_LEVEL", level or "INFO").upper()
        log_level = getattr(logging, name, logging.INFO)

    # stderr only, so --json output on stdout stays machine-readable
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(debug_format, with_name=False))
    handlers: list[logging.Handler] = [console]

    path = log_file or os.getenv("LOG_FILE")
    if path:
        file_handler = logging.FileHandler(path, mode="a")
        file_handler.setFormatter(_formatter(debug_format, with_name=True))
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    if log_level > logging.DEBUG:
        for noisy in ("urllib3", "requests"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
