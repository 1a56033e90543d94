# services/logging_utils.py
import os
import logging
import logging.config
from pathlib import Path
import re


class RedactingFilter(logging.Filter):
    """
    A logging.Filter that keeps session tokens and negotiation bodies out of the logs.

    Tokens are the only credential a session has, so only a short prefix is
    logged. SDP and ICE candidate bodies reveal network addresses and are
    dropped entirely.
    """

    SENSITIVE_PATTERNS = [
        (re.compile(r'(token=)([0-9A-Za-z]{8})[0-9A-Za-z-]+'), r"\1\2..."),
        (re.compile(r'(sdp=)\S+'), r"\1***"),
        (re.compile(r'(candidate=)\S+'), r"\1***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Called for every LogRecord. Rewrites record.msg (and record.args)
        so that any "token=<uuid>" becomes "token=<8 chars>...".
        """
        msg = record.getMessage()
        for pat, repl in self.SENSITIVE_PATTERNS:
            msg = pat.sub(repl, msg)

        # Overwrite the raw message so formatters see the redacted text
        record.msg = msg
        record.args = ()  # drop args, since we've inlined them

        return True


def setup_logging(
        level: str = None,
        logs_dir: str = None,
        log_file: str = "relay.log") -> None:
    """
    Configure application-wide logging with console and rotating file handlers.

    Args:
        level (str, optional): Logging level (e.g., "INFO", "DEBUG").
            Defaults to the LOG_LEVEL environment variable or "INFO".
        logs_dir (str, optional): Directory path to store log files.
            Will be created if it does not exist. Defaults to the LOGS_DIR
            environment variable or "logs".
        log_file (str, optional): Filename for the main log file within logs_dir.
            Defaults to "relay.log".

    Returns:
        None

    Raises:
        OSError: If the logs_dir directory cannot be created.
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logs_dir = logs_dir or os.getenv("LOGS_DIR", "logs")

    Path(logs_dir).mkdir(parents=True, exist_ok=True)

    LOGGING_CONFIG = {
        "version": 1,
        "disable_existing_loggers": False,          # keep 3rd-party logs
        "filters": {
            "redact": {
                "()": RedactingFilter,
            },
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
                "datefmt": "%d-%m-%Y %H:%M:%S",
            },
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler",
                        "formatter": "default",
                        "filters": ["redact"],
                        "level": level},
            "file":    {"class": "logging.handlers.TimedRotatingFileHandler",
                        "formatter": "default",
                        "filters": ["redact"],
                        "filename": f"{logs_dir}/{log_file}",
                        "when": "midnight",
                        "backupCount": 14,
                        "encoding": "utf-8",
                        "level": level},
            "errors":  {"class": "logging.handlers.RotatingFileHandler",
                        "formatter": "default",
                        "filters": ["redact"],
                        "filename": f"{logs_dir}/relay-error.log",
                        "maxBytes": 10 * 1024 * 1024,    # 10 MiB
                        "backupCount": 5,
                        "encoding": "utf-8",
                        "level": "ERROR"},
        },
        "loggers": {
            # websockets logs every failed handshake at INFO
            "websockets": {"level": "WARNING"},
        },
        "root": {"level": level,
                 "handlers": ["console", "file", "errors"]},
    }

    logging.config.dictConfig(LOGGING_CONFIG)
