"""Operational logging for phishwatch.

Everything goes to stderr, so stdout stays free for the alert lines. The
certstream client logs through stdlib logging and is rendered the same way.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Third-party loggers and the level they are allowed to speak at
QUIET_LOGGERS: dict[str, int] = {
    "certstream": logging.INFO,
    "tldextract": logging.WARNING,  # one line per suffix-list fetch attempt
    "websocket": logging.WARNING,
}


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Install a single stderr handler rendering both structlog and stdlib records.

    Args:
        verbose: Show phishwatch DEBUG events (per-domain scores, decode misses).
        log_json: One JSON object per line instead of the console renderer.
    """
    stamped: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
    ]
    structlog.configure(
        processors=[*stamped, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=stamped,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.WARNING)
    logging.getLogger("phishwatch").setLevel(logging.DEBUG if verbose else logging.INFO)
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
