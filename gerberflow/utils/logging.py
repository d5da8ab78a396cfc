import contextvars
import json
import logging
import sys
from datetime import datetime, timezone

_log_ctx: contextvars.ContextVar[dict] = contextvars.ContextVar(
    "gerberflow_log_ctx", default={}
)

_CONTEXT_FIELDS = ("batch", "stage", "file")


def set_log_context(**kwargs) -> contextvars.Token:
    ctx = dict(_log_ctx.get())
    ctx.update(kwargs)
    return _log_ctx.set(ctx)


def restore_log_context(token: contextvars.Token) -> None:
    _log_ctx.reset(token)


def get_log_context() -> dict:
    return dict(_log_ctx.get())


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()
        data = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%SZ"
            ),
            "level": record.levelname,
            "logger": record.name,
        }
        for field in _CONTEXT_FIELDS:
            data[field] = getattr(record, field, ctx.get(field))
        data["msg"] = record.getMessage()

        if hasattr(record, "metrics"):
            data["metrics"] = record.metrics
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)

        # Clean nulls
        data = {k: v for k, v in data.items() if v is not None}
        return json.dumps(data, ensure_ascii=False)


def setup_logging(level=logging.INFO, log_file: str = None) -> logging.Logger:
    logger = logging.getLogger("gerberflow")
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = JsonFormatter()

    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger
