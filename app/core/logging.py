import logging
import sys

from pythonjsonlogger import jsonlogger

from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# client libraries that log every round-trip below INFO
CHATTY_LOGGERS = ("web3", "httpx", "httpcore", "urllib3", "sqlalchemy.engine")


class GrantsJsonFormatter(jsonlogger.JsonFormatter):
    pass


def build_formatter(settings: Settings) -> GrantsJsonFormatter:
    return GrantsJsonFormatter(
        LOG_FORMAT,
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": settings.app_name, "environment": settings.environment},
    )


def configure_logging(settings: Settings) -> None:
    """
    JSON lines on stdout, tagged with service and environment.

    Safe to call once per app build: only the handler installed here is
    replaced, anything else on the root logger is left alone.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if isinstance(handler.formatter, GrantsJsonFormatter):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings))
    root.addHandler(handler)

    for name in ("uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(level)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
