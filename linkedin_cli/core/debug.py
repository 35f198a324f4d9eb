"""
Per-subsystem diagnostic output.

Each toggle (LI_DEBUG_QUERY_IDS, LI_DEBUG_CONNECTIONS, ...) maps to a logger
under `linkedin_cli.debug.<subsystem>` that writes `[li][<subsystem>] ...`
lines to stderr when enabled. Diagnostics never affect return values.
"""
import logging
import sys

DEBUG_LOGGER_PREFIX = "linkedin_cli.debug"


class _StderrHandler(logging.StreamHandler):
    """Resolves sys.stderr at emit time so redirected streams are honoured."""

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stderr
        super().emit(record)


class _SubsystemFormatter(logging.Formatter):
    def __init__(self, subsystem: str):
        super().__init__(f"[li][{subsystem}] %(message)s")


def get_debug_logger(subsystem: str, enabled: bool) -> logging.Logger:
    """
    Return the diagnostic logger for a subsystem, enabled or silenced.

    Args:
        subsystem: Short tag such as "query-ids" or "connections"
        enabled: Value of the matching LI_DEBUG_* toggle
    """
    debug_logger = logging.getLogger(f"{DEBUG_LOGGER_PREFIX}.{subsystem}")
    if not any(getattr(h, "_li_debug", False) for h in debug_logger.handlers):
        handler = _StderrHandler(sys.stderr)
        handler.setFormatter(_SubsystemFormatter(subsystem))
        handler._li_debug = True
        debug_logger.addHandler(handler)
        debug_logger.propagate = False
    debug_logger.setLevel(logging.DEBUG if enabled else logging.CRITICAL + 1)
    return debug_logger
