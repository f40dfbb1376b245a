"""Structured logging configuration for slidecast.

Modules log through plain ``logging.getLogger(__name__)``; structlog's
``ProcessorFormatter`` renders those records either as colored console
lines or as JSON (``LOG_JSON``).

Run correlation: ``VideoProductionAgent.process`` calls ``set_job_context``
with the run's workspace id before any stage starts. The id lives in a
``ContextVar``, so it follows the run into the synthesis and render tasks
spawned by ``fan_out`` (tasks copy the current context when created) but
not into other requests served concurrently by the same process. Every
record emitted inside the run gets a ``run_id`` field, matching the
``slidecast_<run_id>_`` prefix of its workspace directory.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Run ID of the pipeline run executing in the current task
current_run_id: ContextVar[str | None] = ContextVar("current_run_id", default=None)

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "google.auth",
    "google.auth.transport.requests",
    "urllib3.connectionpool",
    "PIL",
    "multipart",
)


def add_run_id(_logger, _method_name, event_dict):
    """Structlog processor to inject run_id into all log events."""
    run_id = current_run_id.get()
    if run_id:
        event_dict["run_id"] = run_id
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines for log aggregation; colored console otherwise
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_run_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib records (every module logs through logging.getLogger) are
    # rendered by the same processor chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def set_job_context(run_id: str) -> None:
    """Tag subsequent log records of this task with ``run_id``."""
    current_run_id.set(run_id)


def clear_job_context() -> None:
    """Clear the current run context."""
    current_run_id.set(None)
