import json
import logging
import sys
from typing import Any, Dict, Iterable

REDACTED_KEYS = ("app_secret", "password", "token", "tenant_access_token")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(redact(record.extra))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def redact(extra: Dict[str, Any], keys: Iterable[str] = REDACTED_KEYS) -> Dict[str, Any]:
    hidden = set(keys)
    return {k: ("***" if k in hidden and v else v) for k, v in extra.items()}


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger()
    if logger.handlers:
        return logger
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger


def log_json(logger: logging.Logger, msg: str, level: int = logging.INFO, **extra: Any) -> None:
    logger.log(level, msg, extra={"extra": extra})
