from __future__ import annotations

__all__ = ["DependencyResolver"]

import logging
from typing import Iterable, Iterator

from climproc.errors import UnresolvedDependencyError
from climproc.models import ClimateVariableFormat, Job

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Run-scoped, append-only registry of the jobs created so far.

    Processors call :meth:`get_job` while creating their jobs to translate a
    declared dependency format into the concrete upstream job. The
    orchestrator registers each processor's jobs before moving to the next
    processor, so every dependency declared by a correctly sorted processor
    is already here by the time it is looked up.

    Several jobs may be registered for the same output format; lookups
    return the first one registered.
    """

    def __init__(self, jobs: Iterable[Job] | None = None) -> None:
        self._jobs: list[Job] = list(jobs) if jobs is not None else []

    def add_jobs(self, jobs: Iterable[Job]) -> None:
        """Append *jobs* in order. No deduplication or validation."""
        for job in jobs:
            existing = self._find(job.output) if job.output is not None else None
            if existing is not None:
                logger.warning(
                    "job %s produces %s, which is already produced by %s; "
                    "dependency lookups will keep resolving to %s",
                    job.name, job.output, existing.name, existing.name,
                )
            self._jobs.append(job)

    def get_jobs(self) -> list[Job]:
        """Return all registered jobs in insertion order."""
        return list(self._jobs)

    def get_job(self, dependency: ClimateVariableFormat) -> Job:
        """Return the first registered job producing *dependency*.

        Raises
        ------
        UnresolvedDependencyError
            If no registered job produces *dependency*.
        """
        job = self._find(dependency)
        if job is None:
            raise UnresolvedDependencyError(dependency)
        return job

    def _find(self, fmt: ClimateVariableFormat) -> Job | None:
        for job in self._jobs:
            if job.output == fmt:
                return job
        return None

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs))
