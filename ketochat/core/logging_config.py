"""Structured logging setup.

Provides:
- JSON-lines log records carrying OpenTelemetry trace/span identifiers
- Log level from settings (LOG_LEVEL)
- File output at project_root/logs/app.jsonl with APP_LOG_DIR override
- A plain console handler in debug mode
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider

_EXCLUDED_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module", "lineno",
    "funcName", "created", "msecs", "relativeCreated", "thread", "threadName", "processName", "process",
    "exc_info", "exc_text", "stack_info", "getMessage", "taskName", "message", "asctime",
}

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("LiteLLM", "LiteLLM Router", "litellm", "httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process_id": os.getpid(),
            "thread_name": record.threadName,
        }

        span = trace.get_current_span()
        if span is not None and span.is_recording():
            sc = span.get_span_context()
            if sc.is_valid:
                entry["trace_id"] = f"{sc.trace_id:032x}"
                entry["span_id"] = f"{sc.span_id:016x}"

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for k, v in record.__dict__.items():
            if k not in _EXCLUDED_RECORD_KEYS:
                entry[f"extra_{k}"] = v
        return json.dumps(entry, default=str)


class LoggingConfig:
    """Configure tracing + structured logging for one process."""

    def __init__(
        self,
        service_name: str = "ketochat",
        service_version: str = "1.0.0",
        log_level: str = "INFO",
        log_dir: Optional[str] = None,
        debug_mode: bool = False,
        suppress_third_party: bool = True,
    ) -> None:
        self.service_name = service_name
        self.service_version = service_version
        self.debug_mode = debug_mode
        self.suppress_third_party = suppress_third_party
        self.log_level = self._parse_level(log_level)
        if log_dir:
            self.logs_dir = Path(log_dir)
        else:
            # ketochat/core/logging_config.py -> project root is 2 levels up
            self.logs_dir = Path(__file__).resolve().parents[2] / "logs"
        self.log_file = self.logs_dir / "app.jsonl"
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self._setup_tracing()
        self._setup_logging()

    @staticmethod
    def _parse_level(level_name: str) -> int:
        level = getattr(logging, (level_name or "INFO").upper(), None)
        return level if isinstance(level, int) else logging.INFO

    def _setup_tracing(self) -> None:
        resource = Resource.create(
            {
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
            }
        )
        trace.set_tracer_provider(TracerProvider(resource=resource))

    def _setup_logging(self) -> None:
        root = logging.getLogger()
        for h in root.handlers[:]:
            root.removeHandler(h)

        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(self.log_level)
        root.addHandler(file_handler)
        root.setLevel(self.log_level)

        if self.debug_mode:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            console.setLevel(logging.DEBUG)
            root.addHandler(console)

        if self.suppress_third_party:
            for noisy in _NOISY_LOGGERS:
                logging.getLogger(noisy).setLevel(logging.WARNING)

    def get_log_file_path(self) -> Path:
        return self.log_file


# Global instance
logging_config: Optional[LoggingConfig] = None


def setup_logging(
    service_name: str = "ketochat",
    service_version: str = "1.0.0",
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
    debug_mode: bool = False,
    suppress_third_party: bool = True,
) -> LoggingConfig:
    global logging_config
    logging_config = LoggingConfig(
        service_name, service_version, log_level, log_dir, debug_mode, suppress_third_party
    )
    return logging_config


def get_logging_config() -> Optional[LoggingConfig]:
    return logging_config
