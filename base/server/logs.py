import logging
import re
import sys

from pythonjsonlogger.json import JsonFormatter
from termcolor import colored
from typing import TextIO

from base.config import BaseConfig


##
## Redaction
##


REDACTED = "<redacted>"

REDACT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Authorization headers: "Basic dXNlcjpwYXNz", "Bearer eyJhbGciOi...".
    (re.compile(r"\b(Basic|Bearer) [A-Za-z0-9._~+/=-]+"), rf"\1 {REDACTED}"),
    # OAuth secrets, as JSON or form fields.
    (
        re.compile(
            r"""(["']?(?:access_token|refresh_token|client_secret|token)["']?"""
            r"""\s*[:=]\s*["']?)[^"'&,\s}]+"""
        ),
        rf"\1{REDACTED}",
    ),
]


def redact_secrets(message: str) -> str:
    for pattern, replacement in REDACT_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class RedactSecretsFilter(logging.Filter):
    """
    Scrub credentials from records before any handler formats them, in case
    a token ends up in an exception message.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


##
## Formatting
##


class TicketingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)

        color: str | None = None
        if "Traceback" in result:
            color = "light_red"
        elif record.levelno >= logging.ERROR:
            color = "red"
        elif record.levelno >= logging.WARNING:
            color = "yellow"
        elif record.levelno >= logging.INFO:
            color = "blue"

        return colored(result, color) if color else result


def _get_log_formatter() -> logging.Formatter:
    if BaseConfig.logs_as_json():
        return JsonFormatter(
            "%(asctime)%(levelname)%(name)%(process)%(message)",
        )
    else:
        return TicketingFormatter(
            fmt="%(levelname)7s - %(name)-0s - [P%(process)d] %(message)s",
        )


##
## Setup
## - Logs of level WARNING and above are sent to stderr.
## - Logs below level WARNING are sent to stdout, when enabled.
##


def setup_logging(
    app_name: str = "ticketing",
    log_level: int | None = None,
) -> logging.Logger:
    """
    Configure the root logger and the parent loggers of `base` and the app.
    Meant to be called once, by the application that hosts this package.
    """
    log_format = _get_log_formatter()
    _configure_logger(logging.getLogger("base"), BaseConfig.log_level, log_format)
    app_logger = logging.getLogger(app_name)
    _configure_logger(app_logger, log_level or BaseConfig.log_level, log_format)
    _configure_root_logger(log_format)
    return app_logger


def _configure_logger(
    logger: logging.Logger,
    log_level: int,
    log_format: logging.Formatter,
) -> None:
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(_stream_handler(sys.stderr, logging.WARNING, log_format))
    if log_level < logging.WARNING:
        handler = _stream_handler(sys.stdout, logging.DEBUG, log_format)
        handler.addFilter(lambda record: record.levelno < logging.WARNING)
        logger.addHandler(handler)


def _stream_handler(
    stream: TextIO,
    level: int,
    log_format: logging.Formatter,
) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(log_format)
    handler.addFilter(RedactSecretsFilter())
    return handler


def _configure_root_logger(log_format: logging.Formatter) -> None:
    """
    The root logger gets the records of all other loggers, which only send
    WARNING (and above) to stderr.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    root_logger.addHandler(_stream_handler(sys.stderr, logging.WARNING, log_format))
