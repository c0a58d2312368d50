"""sorter.py — order processors so that producers run before consumers.

Each processor declares the formats it produces (its output format plus any
intermediate outputs) and the formats it depends on. :func:`sort_by_dependencies`
maps every format to its single producer, turns the declared dependencies
into processor → processor edges, and performs a depth-first topological
sort over them.

Typical usage::

    from climproc.sorter import sort_by_dependencies

    for processor in sort_by_dependencies(dataset.get_processors(context)):
        resolver.add_jobs(processor.create_jobs(dataset, context))
"""
from __future__ import annotations

__all__ = ["sort_by_dependencies", "build_producer_map"]

import logging
from typing import TYPE_CHECKING, Iterable

from climproc.errors import CycleError, DuplicateProducerError, MissingProducerError

if TYPE_CHECKING:
    from climproc.models import ClimateVariableFormat
    from climproc.processors import Processor

logger = logging.getLogger(__name__)


def build_producer_map(processors: Iterable[Processor]) -> dict[ClimateVariableFormat, Processor]:
    """Map every produced format to the processor that produces it.

    Raises
    ------
    DuplicateProducerError
        If two processors (or one processor twice) claim the same format,
        whether as output or intermediate output.
    """
    produced_by: dict[ClimateVariableFormat, Processor] = {}
    for processor in processors:
        for fmt in [*processor.intermediate_outputs, processor.output_format]:
            if fmt in produced_by:
                raise DuplicateProducerError(fmt)
            produced_by[fmt] = processor
    return produced_by


def sort_by_dependencies(processors: Iterable[Processor]) -> list[Processor]:
    """Return *processors* ordered so that every producer precedes its consumers.

    The result is the DFS post-order over the processor dependency graph,
    taking unvisited roots in input order and each processor's dependencies
    in input order too, so the output is a deterministic function of the
    input order. No partial result is returned on failure.

    Raises
    ------
    DuplicateProducerError
        If two processors produce the same format.
    MissingProducerError
        If a processor depends on a format that no processor produces.
    CycleError
        If the dependency graph contains a cycle, including a processor
        that depends on its own output.
    """
    processors = list(processors)
    produced_by = build_producer_map(processors)
    position = {id(p): i for i, p in enumerate(processors)}

    edges: dict[int, list[Processor]] = {}
    for processor in processors:
        upstream: dict[int, Processor] = {}
        for dependency in processor.dependencies:
            producer = produced_by.get(dependency)
            if producer is None:
                raise MissingProducerError(processor.output_format, dependency)
            upstream[id(producer)] = producer
        edges[id(processor)] = sorted(upstream.values(), key=lambda p: position[id(p)])

    result: list[Processor] = []
    visited: set[int] = set()
    visiting: list[Processor] = []

    def visit(processor: Processor) -> None:
        if any(p is processor for p in visiting):
            start = next(i for i, p in enumerate(visiting) if p is processor)
            cycle = [p.output_format for p in visiting[start:]] + [processor.output_format]
            raise CycleError(cycle)
        if id(processor) in visited:
            return
        visiting.append(processor)
        for upstream in edges[id(processor)]:
            visit(upstream)
        visiting.pop()
        visited.add(id(processor))
        result.append(processor)

    for processor in processors:
        if id(processor) not in visited:
            visit(processor)

    logger.debug("processor order: %s", ", ".join(str(p.output_format) for p in result))
    return result
