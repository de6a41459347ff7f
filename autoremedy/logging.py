"""Structured logging configuration for autoremedy."""

import logging
import sys
from typing import Any, Dict, Optional, TYPE_CHECKING

import structlog
from structlog.types import Processor

from .config import get_settings

if TYPE_CHECKING:
    from .models.tasks import RemediationTask


def setup_logging() -> None:
    """Configure structured logging for autoremedy."""
    settings = get_settings()
    
    # structlog's level filter defers to the stdlib logger level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
    )
    
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    
    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def set_log_level(level: str) -> None:
    """Change the effective level after startup (CLI --verbose)."""
    logging.getLogger().setLevel(level.upper())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_pipeline_event(
    logger: structlog.stdlib.BoundLogger,
    run_id: str,
    phase: str,
    repository: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """Log a pipeline event with run context."""
    log_data: Dict[str, Any] = {
        "run_id": run_id,
        "phase": phase,
    }
    
    if repository is not None:
        log_data["repository"] = repository
    
    log_data.update(kwargs)
    
    logger.info(f"pipeline.{phase}", **log_data)


def log_api_call(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    path: str,
    status: Optional[int],
    attempt: int,
    **kwargs: Any,
) -> None:
    """Log a GitHub API exchange. Never include the token or request body."""
    log_data: Dict[str, Any] = {
        "http_method": method,
        "http_path": path,
        "http_status": status,
        "attempt": attempt,
    }
    log_data.update(kwargs)
    
    logger.debug("github.call", **log_data)


def log_task_transition(
    logger: structlog.stdlib.BoundLogger,
    task: "RemediationTask",
    previous: str,
    **kwargs: Any,
) -> None:
    """Log a remediation task status transition."""
    log_data: Dict[str, Any] = {
        "task_index": task.index,
        "branch": task.branch_name,
        "package": task.package_name,
        "ecosystem": task.ecosystem,
        "from_status": previous,
        "to_status": task.status,
    }
    if task.failure_reason is not None:
        log_data["failure_reason"] = task.failure_reason
    if task.skip_reason is not None:
        log_data["skip_reason"] = task.skip_reason
    
    log_data.update(kwargs)
    
    if task.status == "failed":
        logger.warning("task.transition", **log_data)
    else:
        logger.info("task.transition", **log_data)


# Initialize logging on module import
setup_logging()
