import logging
import sys
import json
import re
from typing import Any, Dict, Optional
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from craftlink.config.settings import Settings, config_settings
from craftlink.common.constants import SENSITIVE_PATTERNS, request_id_ctx

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName", "message", "asctime",
))

_ID_FIELDS = ("user_id", "session_id", "otp_id")


def sanitize_message_text(msg: str) -> str:
    """Sanitize sensitive patterns inside a text message (best-effort)."""
    out = msg
    for p in SENSITIVE_PATTERNS:
        # replace occurrences like "password=abc" or '"password": "abc"'
        out = re.sub(rf'("{p}"\s*:\s*")[^"]+(")', r'\1[REDACTED]\2', out, flags=re.IGNORECASE)
        out = re.sub(rf'({p}\s*[=:]\s*)[\w\-\./]+', r'\1[REDACTED]', out, flags=re.IGNORECASE)
    return out


def _shorten_id(val: Any) -> str:
    val = str(val)
    if len(val) > 12:  # uuid strings are 36 chars
        return val[:8] + "..." + val[-4:]
    return val[:8] + "..."


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter for non-dev environments"""

    def __init__(self, env: str = config_settings.ENV, service: str = config_settings.SERVICE_NAME, **kwargs):
        super().__init__(**kwargs)
        self.env = env.lower()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "env": self.env,
            "service": self.service,
        }

        rid = request_id_ctx.get()
        if rid:
            log_data["request_id"] = rid

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and not k.startswith("_")
        }

        for field in _ID_FIELDS:
            if field in extra_fields:
                extra_fields[field] = _shorten_id(extra_fields[field])

        log_data.update(extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["message"] = sanitize_message_text(log_data.get("message", ""))

        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Redact sensitive values from messages and extras outside dev"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = sanitize_message_text(record.getMessage())
        record.args = ()
        for k in list(record.__dict__):
            if k in _RESERVED_ATTRS or k.startswith("_"):
                continue
            if any(p == k.lower() for p in SENSITIVE_PATTERNS):
                setattr(record, k, "[REDACTED]")
        return True


# Non-blocking queue-based logging. Configured once per app startup.
_queue_listener: Optional[QueueListener] = None


def _resolve_level(settings: Settings) -> int:
    env = settings.ENV.lower()
    if settings.LOG_LEVEL:
        return logging.getLevelName(settings.LOG_LEVEL.upper())
    if env in ("prod", "staging"):
        return logging.INFO
    if env == "test":
        return logging.WARNING
    return logging.DEBUG


def setup_logging(settings: Optional[Settings] = None):

    global _queue_listener
    settings = settings or config_settings
    env = settings.ENV.lower()

    # a previous app instance in the same process (tests, reload) may still own a listener
    shutdown_logging()

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    q: Queue = Queue(-1)
    qh = QueueHandler(q)

    console_handler = logging.StreamHandler(sys.stdout)
    if env != "dev":
        console_handler.setFormatter(JSONFormatter(env=env, service=settings.SERVICE_NAME))
        console_handler.addFilter(SecurityFilter())
    else:
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)8s] %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root.setLevel(_resolve_level(settings))
    root.addHandler(qh)

    _queue_listener = QueueListener(q, console_handler, respect_handler_level=True)
    _queue_listener.start()

    # silence noisy third-party loggers outside dev
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING if env != "dev" else logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    app_logger = logging.getLogger("craftlink.app")
    return app_logger


def shutdown_logging():
    global _queue_listener
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


class ContextLogger:
    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _with_ctx(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        extra = dict(extra or {})
        rid = request_id_ctx.get()
        if rid:
            extra.setdefault("request_id", rid)
        return extra

    def _merge(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        extra = kwargs.pop("extra", {})
        kwargs["extra"] = {**self._with_ctx(), **(extra or {})}
        kwargs.setdefault("stacklevel", 2)
        return kwargs

    def debug(self, msg: str, *args, **kwargs):
        self._logger.debug(msg, *args, **self._merge(kwargs))

    def info(self, msg: str, *args, **kwargs):
        self._logger.info(msg, *args, **self._merge(kwargs))

    def warning(self, msg: str, *args, **kwargs):
        self._logger.warning(msg, *args, **self._merge(kwargs))

    def error(self, msg: str, *args, **kwargs):
        self._logger.error(msg, *args, **self._merge(kwargs))

    def exception(self, msg: str, *args, **kwargs):
        self._logger.exception(msg, *args, **self._merge(kwargs))


def get_logger(name: str = "craftlink.app") -> ContextLogger:
    return ContextLogger(name)
