from __future__ import annotations

__all__ = ["ClimateDataset", "build_processor"]

from pathlib import Path
from typing import TYPE_CHECKING, Callable

from climproc.config import DatasetSpec, ProcessingConfig, ProcessorSpec
from climproc.models import ClimateVariable, ClimateVariableFormat, VariableInfo
from climproc.processors import (
    MeanProcessor,
    MergetimeProcessor,
    Processor,
    RechunkProcessorDecorator,
    StandardVariableProcessor,
    VpdCalculator,
)

if TYPE_CHECKING:
    from climproc.context import JobCreationContext


# ---------------------------------------------------------------------------
# Processor builder registry
# ---------------------------------------------------------------------------

# Maps processor kind → builder
# Signature: (spec, consumed_formats, config) -> Processor
_PROCESSOR_BUILDERS: dict[str, Callable[..., Processor]] = {}


def _register_builder(kind: str):
    """Decorator to register the builder for a processor kind."""

    def decorator(fn: Callable[..., Processor]) -> Callable[..., Processor]:
        _PROCESSOR_BUILDERS[kind] = fn
        return fn

    return decorator


def build_processor(
    spec: ProcessorSpec,
    consumed: frozenset[ClimateVariableFormat] = frozenset(),
    config: ProcessingConfig | None = None,
) -> Processor:
    """Turn a declarative :class:`ProcessorSpec` into a processor.

    *consumed* is the set of formats other processors in the same dataset
    depend on; a rechunk stage keeps its input file when that file's
    format is consumed elsewhere.
    """
    return _PROCESSOR_BUILDERS[spec.kind](spec, consumed, config)


def _keeps_input(variable: ClimateVariable, consumed: frozenset[ClimateVariableFormat]) -> bool:
    return ClimateVariableFormat.timeseries(variable) in consumed


def _maybe_rechunk(processor: Processor, spec: ProcessorSpec, consumed) -> Processor:
    if not spec.rechunk:
        return processor
    cleanup = not _keeps_input(processor.target_variable, consumed)
    return RechunkProcessorDecorator(processor, cleanup=cleanup)


@_register_builder("standard")
def _build_standard(spec: ProcessorSpec, consumed, config) -> Processor:
    variable = ClimateVariable.parse(spec.variable)
    return StandardVariableProcessor(variable, cleanup=not _keeps_input(variable, consumed))


@_register_builder("mergetime")
def _build_mergetime(spec: ProcessorSpec, consumed, config) -> Processor:
    return MergetimeProcessor(ClimateVariable.parse(spec.variable))


@_register_builder("mean")
def _build_mean(spec: ProcessorSpec, consumed, config) -> Processor:
    variable = ClimateVariable.parse(spec.variable)
    inputs = [ClimateVariable.parse(v) for v in spec.inputs]
    return _maybe_rechunk(MeanProcessor(spec.output_file_name, variable, inputs), spec, consumed)


@_register_builder("vpd")
def _build_vpd(spec: ProcessorSpec, consumed, config) -> Processor:
    method = spec.method or (config.vpd_method if config is not None else "magnus")
    return _maybe_rechunk(VpdCalculator(method), spec, consumed)


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------


class ClimateDataset:
    """An input dataset and the processors needed to produce its outputs.

    Parameters
    ----------
    name:
        Dataset name; appears in job names and output file names.
    input_directory:
        Root of the input files. Each variable's files live in
        ``<input_directory>/<input variable name>/*.nc``.
    variables:
        Name and units of each variable as stored in the input files.
    processors:
        Processor declarations, turned into processors by
        :meth:`get_processors`.
    output_directory:
        Directory (relative to the working/output base directories) for
        this dataset's files. Defaults to the dataset name.
    config:
        Run configuration, supplying the default VPD method.
    """

    def __init__(
        self,
        name: str,
        input_directory: str | Path,
        variables: dict[ClimateVariable, VariableInfo],
        processors: list[ProcessorSpec],
        output_directory: str | None = None,
        config: ProcessingConfig | None = None,
    ) -> None:
        self.name = name
        self.input_directory = Path(input_directory)
        self.variables = dict(variables)
        self.processor_specs = list(processors)
        self.output_directory = output_directory if output_directory is not None else name
        self.config = config

    @classmethod
    def from_spec(cls, spec: DatasetSpec, config: ProcessingConfig | None = None) -> ClimateDataset:
        """Build a dataset from its YAML declaration.

        Raises
        ------
        ValueError
            If a variable name is unknown or a variable entry lacks ``name``.
        """
        variables: dict[ClimateVariable, VariableInfo] = {}
        for key, info in spec.variables.items():
            if "name" not in info:
                raise ValueError(f"Dataset {spec.name!r}: variable {key!r} has no 'name'")
            variables[ClimateVariable.parse(key)] = VariableInfo(info["name"], info.get("units", ""))
        return cls(
            spec.name,
            spec.input_directory,
            variables,
            spec.processors,
            output_directory=spec.output_directory,
            config=config,
        )

    def get_variable_info(self, variable: ClimateVariable) -> VariableInfo:
        """Return name and units of *variable* in the input files."""
        try:
            return self.variables[variable]
        except KeyError:
            raise KeyError(f"Dataset {self.name!r} does not provide variable {variable}") from None

    def get_input_files_directory(self, variable: ClimateVariable) -> Path:
        return self.input_directory / self.get_variable_info(variable).name

    def get_output_directory(self) -> str:
        return self.output_directory

    def get_processors(self, context: JobCreationContext | None = None) -> list[Processor]:
        """Build one processor per declaration, in declaration order."""
        config = self.config if self.config is not None else getattr(context, "config", None)
        plain = [build_processor(spec, frozenset(), config) for spec in self.processor_specs]
        consumed = frozenset(fmt for p in plain for fmt in p.dependencies)
        if not consumed:
            return plain
        return [build_processor(spec, consumed, config) for spec in self.processor_specs]

    def __repr__(self) -> str:
        return f"ClimateDataset({self.name!r}, {len(self.processor_specs)} processor(s))"
