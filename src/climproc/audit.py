"""audit.py — JSONL audit logger for climproc.

Each generation event (a job created, a dataset's scripts generated, a
planning error, the wrapper script written) is appended as a single JSON
object (one line) to the audit log file.  The file is created (with parent
directories) on the first write if it does not already exist.

Typical usage::

    from climproc.audit import get_logger

    audit = get_logger(config)
    audit.log("generated", dataset="silo", jobs=12,
              script="/scratch/ab12/out/scripts/submit_silo")
"""
from __future__ import annotations

__all__ = ["AuditLogger", "get_logger", "AUDIT_EVENTS"]

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from climproc.config import ProcessingConfig

logger = logging.getLogger(__name__)

#: Valid event names for the audit log.
AUDIT_EVENTS = frozenset({"generated", "job_created", "error", "wrapper_written"})


class AuditLogger:
    """Appends structured JSON Lines entries to an audit log file.

    Parameters
    ----------
    log_file:
        Path to the JSONL audit file.  Parent directories are created
        automatically on the first write.
    """

    def __init__(self, log_file: Path) -> None:
        self.log_file = Path(log_file)

    def log(
        self,
        event: str,
        *,
        dataset: str = "",
        job: str = "",
        detail: str = "",
        **extra: Any,
    ) -> None:
        """Append a single audit event as a JSON line.

        Parameters
        ----------
        event:
            One of ``generated``, ``job_created``, ``error``,
            ``wrapper_written``.
        dataset:
            Dataset name.  Empty for run-wide events.
        job:
            Job name, for ``job_created`` events.
        detail:
            Free-text detail message (the error message for ``error``).
        **extra:
            Any additional key-value pairs to include in the log entry.

        Raises
        ------
        ValueError
            If *event* is not one of :data:`AUDIT_EVENTS`.
        """
        if event not in AUDIT_EVENTS:
            raise ValueError(f"Unknown audit event {event!r}. Known events: {sorted(AUDIT_EVENTS)}")
        entry: dict[str, Any] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "event": event,
            "dataset": dataset,
            "job": job,
            "detail": detail,
        }
        entry.update(extra)

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        with self.log_file.open("a") as fh:
            fh.write(json.dumps(entry, default=str) + "\n")

        logger.debug("audit %s: dataset=%s job=%s", event, dataset, job)


def get_logger(config: ProcessingConfig) -> AuditLogger:
    """Return an :class:`AuditLogger` for *config*.

    Uses ``config.log_file`` when set; otherwise defaults to
    ``<output_directory>/climproc_audit.jsonl``.
    """
    if config.log_file is not None:
        log_file = config.log_file
    else:
        log_file = config.output_directory / "climproc_audit.jsonl"
    return AuditLogger(log_file)
