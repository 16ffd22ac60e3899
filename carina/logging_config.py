"""
Logging configuration for the carina command line tool
"""

import logging
import re
from typing import Any, Dict

_TOKEN_PATTERN = re.compile(r"(X-Auth-Token['\"]?\s*[:=]\s*['\"]?)[^'\"\s,}]+", re.IGNORECASE)


class TokenRedactionFilter(logging.Filter):
    """Filter to mask auth tokens in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Rewrite the record message with any auth token masked."""
        message = record.getMessage()
        redacted = _TOKEN_PATTERN.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True  # Never drop records


def get_logging_config(level: str = "WARNING") -> Dict[str, Any]:
    """Get logging configuration with token redaction."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "token_redaction_filter": {
                "()": TokenRedactionFilter
            }
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
                "filters": ["token_redaction_filter"]
            }
        },
        "loggers": {
            "carina": {
                "handlers": ["default"],
                "level": level,
                "propagate": False
            },
            "httpx": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False
            }
        },
        "root": {
            "level": "WARNING",
            "handlers": ["default"]
        }
    }
