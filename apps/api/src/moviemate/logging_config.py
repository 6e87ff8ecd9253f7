import json
import logging
import logging.config
from datetime import datetime, timezone

from moviemate.config import LOG_LEVEL

_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "request_id",
    "client",
    "user_id",
    "candidates",
    "matches",
    "cached",
    "statement",
    "executemany",
    "slow",
    "sampled",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None) -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": (level or LOG_LEVEL).upper(),
            },
        }
    )
