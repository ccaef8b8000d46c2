"""
Structured logging on top of loguru.

Features:
- Dot-notation event names
- Correlation ID and app instance tracking
- Performance metrics
- Error tracking with exception info

Every entry is emitted through loguru with the event name as the message
(unless a human message is given) and the payload bound as extra fields,
so sinks configured in core.logger see the same records.
"""
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from contextvars import ContextVar
from functools import wraps

from loguru import logger as loguru_logger

from uiruntime.config import settings

# Context variables for correlation tracking
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
instance_id_var: ContextVar[Optional[str]] = ContextVar('instance_id', default=None)
context_extra_var: ContextVar[Dict[str, Any]] = ContextVar('context_extra', default={})


class StructuredLogger:
    """
    Structured logger with correlation tracking.

    Each entry carries:
    - Event name (<domain>.<action>.<result>)
    - Logger (module) name
    - Correlation ID and app instance ID
    - Service metadata
    - Optional data payload and error details
    """

    def __init__(self, name: str):
        self.name = name
        self.service_name = settings.app_name
        self.service_version = settings.app_version
        self.environment = settings.environment

    def _get_base_context(self) -> Dict[str, Any]:
        """Get base logging context"""
        context = {
            "logger_name": self.name,
            "service": self.service_name,
            "environment": self.environment,
            "correlation_id": correlation_id_var.get(),
            "instance_id": instance_id_var.get(),
        }
        context.update(context_extra_var.get())
        return context

    def _log(
        self,
        level: str,
        event: str,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        bound = loguru_logger.bind(
            event=event,
            data=extra or {},
            **self._get_base_context()
        )
        if exc_info is not None:
            bound = bound.bind(
                error={"type": type(exc_info).__name__, "message": str(exc_info)}
            )
        bound.opt(depth=2, exception=exc_info).log(level, message or event)

    def debug(self, event: str, message: str = None, extra: Dict = None, **kwargs):
        """Log debug message"""
        self._log("DEBUG", event, message, extra)

    def info(self, event: str, message: str = None, extra: Dict = None, **kwargs):
        """Log info message"""
        self._log("INFO", event, message, extra)

    def warning(
        self,
        event: str,
        message: str = None,
        extra: Dict = None,
        exc_info: BaseException = None,
        **kwargs
    ):
        """Log warning message"""
        self._log("WARNING", event, message, extra, exc_info)

    def error(
        self,
        event: str,
        message: str = None,
        extra: Dict = None,
        exc_info: BaseException = None,
        **kwargs
    ):
        """Log error message"""
        self._log("ERROR", event, message, extra, exc_info)

    def critical(
        self,
        event: str,
        message: str = None,
        extra: Dict = None,
        exc_info: BaseException = None,
        **kwargs
    ):
        """Log critical message"""
        self._log("CRITICAL", event, message, extra, exc_info)

    def performance(
        self,
        event: str,
        duration_ms: float,
        extra: Dict = None
    ):
        """Log performance metric"""
        perf_data = {
            "duration_ms": round(duration_ms, 3),
        }

        if extra:
            perf_data.update(extra)

        self._log("INFO", event, f"{event} ({duration_ms:.1f}ms)", perf_data)


def get_logger(name: str) -> StructuredLogger:
    """
    Get structured logger for module.

    Usage:
        logger = get_logger(__name__)
        logger.info("record.insert.completed", extra={"table": "tasks"})
    """
    return StructuredLogger(name)


class log_context:
    """
    Context manager for correlation tracking.

    Usage:
        with log_context(correlation_id="abc", instance_id="app-1"):
            logger.info("dispatch.action.started")
    """

    def __init__(
        self,
        correlation_id: str = None,
        instance_id: str = None,
        **kwargs
    ):
        self.correlation_id = correlation_id
        self.instance_id = instance_id
        self.extra_context = kwargs
        self._tokens = []

    def __enter__(self):
        """Set context variables"""
        if self.correlation_id:
            self._tokens.append((correlation_id_var, correlation_id_var.set(self.correlation_id)))
        if self.instance_id:
            self._tokens.append((instance_id_var, instance_id_var.set(self.instance_id)))
        if self.extra_context:
            merged = {**context_extra_var.get(), **self.extra_context}
            self._tokens.append((context_extra_var, context_extra_var.set(merged)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore previous context"""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def trace_async(event_prefix: str):
    """
    Decorator for tracing async functions.

    Usage:
        @trace_async("persistence.save")
        async def save(instance_id: str):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)

            start_time = datetime.now(timezone.utc)

            try:
                result = await func(*args, **kwargs)

                duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

                logger.performance(
                    f"{event_prefix}.completed",
                    duration_ms=duration_ms,
                    extra={"function": func.__name__}
                )

                return result

            except Exception as e:
                duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

                logger.error(
                    f"{event_prefix}.failed",
                    extra={
                        "function": func.__name__,
                        "duration_ms": duration_ms,
                        "error_type": type(e).__name__
                    },
                    exc_info=e
                )
                raise

        return wrapper
    return decorator


"""
LOG EVENT NAMING CONVENTIONS:

Use dot notation: <domain>.<action>.<result>

Examples:
- document.parse.failed
- navigation.redirect.scheduled
- dispatch.action.ignored
- dispatch.chain.exceeded
- record.insert.completed
- auth.login.failed
- submit.api.superseded
- persistence.save.failed
- cache.get.hit
"""
