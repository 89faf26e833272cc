"""
Error tracking and structured logging for the paygate service.

Errors, operation timings and workflow events (rejections, degraded fee
quotes) go to stdout as one JSON object per line. Error counts are kept in
memory per process and exposed through /monitoring/errors.
"""

import asyncio
import logging
import time
import json
import traceback
from collections import Counter
from typing import Dict, Any
from functools import wraps
from datetime import datetime, timezone
from paygate.core.exceptions import BaseAppError

SLOW_OPERATION_SECONDS = 5.0


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorMonitor:
    """JSON log emitter with per-type error counters"""

    def __init__(self):
        self.logger = logging.getLogger("paygate.monitor")
        self.error_counts_memory: Counter = Counter()

    def _emit(self, level: int, record: Dict[str, Any]):
        record["timestamp"] = _utc_now()
        self.logger.log(level, json.dumps(record, default=str))

    def log_error(self, error: Exception, context: Dict[str, Any] = None):
        """
        Count and log an error.

        Client-side app errors (4xx) are logged without a stack trace.
        """
        error_type = type(error).__name__
        self.error_counts_memory[error_type] += 1

        record = {
            "event": "error",
            "error_id": f"{error_type}_{int(time.time())}",
            "error_type": error_type,
            "error_message": str(error),
            "context": context or {},
            "count": self.error_counts_memory[error_type],
        }
        if not isinstance(error, BaseAppError) or error.http_status_code >= 500:
            record["stack_trace"] = traceback.format_exc()

        self._emit(logging.ERROR, record)

    def log_performance(self, operation: str, duration: float, context: Dict[str, Any] = None):
        level = logging.WARNING if duration > SLOW_OPERATION_SECONDS else logging.INFO
        self._emit(level, {
            "event": "performance",
            "operation": operation,
            "duration": duration,
            "context": context or {},
        })

    def log_event(self, event: str, level: int = logging.INFO, **fields: Any):
        """Log a named workflow event with arbitrary fields."""
        self._emit(level, {"event": event, **fields})

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            "error_counts": dict(self.error_counts_memory),
            "total_errors": sum(self.error_counts_memory.values()),
            "timestamp": _utc_now(),
            "mode": "ephemeral",
        }


error_monitor = ErrorMonitor()


def monitor_errors(operation_name: str = None):
    """
    Record the duration of every call and log any exception before re-raising.

    Works on plain functions and coroutine functions.
    """
    def decorator(func):
        op_name = operation_name or f"{func.__module__}.{func.__name__}"

        def failed(error: Exception, started: float):
            error_monitor.log_error(error, {"operation": op_name, "duration": time.time() - started})

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    failed(e, started)
                    raise
                error_monitor.log_performance(op_name, time.time() - started)
                return result

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                failed(e, started)
                raise
            error_monitor.log_performance(op_name, time.time() - started)
            return result

        return sync_wrapper

    return decorator


def setup_monitoring(level: str = "INFO"):
    """Send all logging to stdout as bare messages at the configured level."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    error_monitor.log_event("system_startup", message="Monitoring initialized (stdout only)", level_name=level.upper())
