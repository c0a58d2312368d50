"""
Errors raised while building a processing plan.

Every error here describes an invalid plan, never a transient condition, so
nothing in climproc retries or recovers from them. They propagate unchanged
to the caller of :meth:`~climproc.orchestrator.ScriptOrchestrator.generate_scripts`
and abort the run before any submission script is written.
"""
from __future__ import annotations

__all__ = [
    "PlanError",
    "CycleError",
    "MissingProducerError",
    "DuplicateProducerError",
    "UnresolvedDependencyError",
]

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from climproc.models import ClimateVariableFormat


class PlanError(ValueError):
    """Base exception for climproc planning failures."""
    pass


class CycleError(PlanError):
    """The processor or job dependency graph contains a cycle."""

    def __init__(self, cycle: list[Any]) -> None:
        self.cycle = list(cycle)
        path = " -> ".join(str(node) for node in self.cycle)
        super().__init__(f"Circular dependency detected: {path}")


class MissingProducerError(PlanError):
    """A processor depends on a format that no processor produces."""

    def __init__(self, processor_format: ClimateVariableFormat, format: ClimateVariableFormat) -> None:
        self.processor_format = processor_format
        self.format = format
        super().__init__(
            f"Processor for {processor_format} depends on {format}, "
            "which is not produced by any processor"
        )


class DuplicateProducerError(PlanError):
    """Two or more processors claim to produce the same format."""

    def __init__(self, format: ClimateVariableFormat) -> None:
        self.format = format
        super().__init__(f"Multiple processors produce {format}")


class UnresolvedDependencyError(PlanError):
    """No registered job produces the requested format.

    The processor sorter guarantees every declared dependency is produced
    by an earlier processor, so this indicates a processor that resolved a
    format it never declared, or a processor that failed to return the job
    producing its declared output.
    """

    def __init__(self, format: ClimateVariableFormat) -> None:
        self.format = format
        super().__init__(f"No job found for dependency: {format}")
