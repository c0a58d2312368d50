"""models.py — value types shared by the job dependency graph engine.

A processing artifact is identified by a :class:`ClimateVariableFormat`, the
pair of a :class:`ClimateVariable` and the :class:`ProcessingStage` it has
reached. Processors declare the formats they produce and require; concrete
:class:`Job` records carry the format they produce and the upstream jobs
that must finish before them.
"""
from __future__ import annotations

__all__ = [
    "ClimateVariable",
    "ProcessingStage",
    "ClimateVariableFormat",
    "Job",
    "VariableInfo",
]

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ClimateVariable(str, Enum):
    """Physical quantities handled by the pipeline (values are CF short names)."""

    TEMPERATURE = "tas"
    MIN_TEMPERATURE = "tasmin"
    MAX_TEMPERATURE = "tasmax"
    PRECIPITATION = "pr"
    SPECIFIC_HUMIDITY = "huss"
    SURFACE_PRESSURE = "ps"
    SHORTWAVE_RADIATION = "rsds"
    WIND_SPEED = "sfcWind"
    RELATIVE_HUMIDITY = "hurs"
    MIN_RELATIVE_HUMIDITY = "hursmin"
    MAX_RELATIVE_HUMIDITY = "hursmax"
    VPD = "vpd"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | ClimateVariable) -> ClimateVariable:
        """Look up a variable by short name (``tas``) or member name (``TEMPERATURE``)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[str(value).upper()]
        except KeyError:
            known = sorted(v.value for v in cls)
            raise ValueError(f"Unknown climate variable {value!r}. Known variables: {known}") from None


class ProcessingStage(str, Enum):
    """Processing phase of an artifact, in processing order."""

    # Unpacked, renamed, regridded, unit-converted and temporally aggregated.
    PREPROCESSED = "preprocessed"
    # The whole timeseries in one file, time as the first dimension.
    TIMESERIES = "timeseries"
    # Rechunked for the model's access patterns.
    RECHUNKED = "rechunked"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ClimateVariableFormat:
    """A variable at a particular stage of processing."""

    variable: ClimateVariable
    stage: ProcessingStage

    @classmethod
    def preprocessed(cls, variable: ClimateVariable) -> ClimateVariableFormat:
        return cls(variable, ProcessingStage.PREPROCESSED)

    @classmethod
    def timeseries(cls, variable: ClimateVariable) -> ClimateVariableFormat:
        return cls(variable, ProcessingStage.TIMESERIES)

    @classmethod
    def rechunked(cls, variable: ClimateVariable) -> ClimateVariableFormat:
        return cls(variable, ProcessingStage.RECHUNKED)

    def __str__(self) -> str:
        return f"{self.variable}: ({self.stage})"


@dataclass(frozen=True, eq=False)
class Job:
    """One generated unit of work: a script plus the jobs it must wait for.

    Jobs compare and hash by identity; two jobs are the same job only when
    they are the same object. ``dependencies`` is frozen into a tuple when
    the job is created and never changes afterwards.

    Parameters
    ----------
    name:
        Job name, unique within one generation run. Used as the PBS job
        name and as the key in the submission script's ``JOB_IDS`` map.
    script_path:
        Where the job's script was written.
    output:
        The format this job produces. ``None`` only for the synthetic
        cleanup job, which produces nothing.
    output_path:
        Location of the job's output artifact (file or directory).
    dependencies:
        Jobs that must complete successfully before this one starts.
    """

    name: str
    script_path: Path
    output: ClimateVariableFormat | None
    output_path: Path
    dependencies: tuple[Job, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "script_path", Path(self.script_path))
        object.__setattr__(self, "output_path", Path(self.output_path))
        object.__setattr__(self, "dependencies", tuple(self.dependencies))

    def __repr__(self) -> str:
        deps = ", ".join(d.name for d in self.dependencies)
        return f"Job({self.name!r}, output={self.output}, dependencies=[{deps}])"


@dataclass(frozen=True)
class VariableInfo:
    """Name and units of a variable as stored in a file."""

    name: str
    units: str
