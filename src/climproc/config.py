from __future__ import annotations

__all__ = ["ProcessorSpec", "DatasetSpec", "ProcessingConfig", "PROCESSOR_KINDS", "VPD_METHODS"]

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from climproc.scripts import PBSConfig

#: Processor kinds a dataset entry may declare.
PROCESSOR_KINDS = frozenset({"standard", "mergetime", "mean", "vpd"})

#: VPD estimation methods understood by :class:`~climproc.processors.VpdCalculator`.
VPD_METHODS = frozenset({"magnus", "buck1981", "alduchov_eskridge1996", "allen1998", "sonntag1990"})


@dataclass
class ProcessorSpec:
    """Declaration of one processor in a dataset entry."""

    kind: str  # one of PROCESSOR_KINDS
    variable: str  # target variable short name, e.g. "tas"
    inputs: list[str] = field(default_factory=list)  # mean only
    method: str | None = None  # vpd only; defaults to ProcessingConfig.vpd_method
    rechunk: bool = False  # wrap mean/vpd output in a rechunk stage
    output_file_name: str | None = None  # mean only

    def __post_init__(self) -> None:
        if self.kind not in PROCESSOR_KINDS:
            raise ValueError(
                f"Unknown processor kind {self.kind!r} for variable {self.variable!r}. "
                f"Known kinds: {sorted(PROCESSOR_KINDS)}"
            )
        if self.kind == "mean" and len(self.inputs) < 2:
            raise ValueError(
                f"Mean processor for {self.variable!r} requires at least two inputs, "
                f"got {self.inputs}"
            )
        if self.kind == "vpd" and self.variable != "vpd":
            raise ValueError(
                f"VPD processor must target variable 'vpd', got {self.variable!r}"
            )


@dataclass
class DatasetSpec:
    """Declaration of one input dataset."""

    name: str
    input_directory: Path
    # Variable short name -> {"name": ..., "units": ...} as stored in the input files.
    variables: dict[str, dict[str, str]] = field(default_factory=dict)
    processors: list[ProcessorSpec] = field(default_factory=list)
    # Relative to the working/output base directories; "." shares one directory.
    output_directory: str | None = None

    def __post_init__(self) -> None:
        self.input_directory = Path(self.input_directory)
        self.processors = [
            p if isinstance(p, ProcessorSpec) else ProcessorSpec(**p) for p in self.processors
        ]


@dataclass
class ProcessingConfig:
    """All settings for one generation run."""

    output_directory: Path = field(default_factory=lambda: Path("climproc_output"))

    # PBS settings
    project: str = ""
    queue: str = "normal"
    walltime: str = "01:00:00"
    ncpus: int = 1
    memory: int = 4  # GiB
    jobfs: int = 1  # GiB
    email: str | None = None
    email_notifications: str = ""  # any of "a" (abort), "b" (begin), "e" (end)

    # Processing settings
    input_timestep_hours: int = 1
    output_timestep_hours: int = 24
    chunk_size_spatial: int = 1
    chunk_size_time: int = 365
    compression_level: int = 5
    grid_file: Path | None = None
    vpd_method: str = "magnus"

    # JSONL audit log path. Defaults to <output_directory>/climproc_audit.jsonl at runtime.
    log_file: Path | None = None

    datasets: list[DatasetSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate settings that would otherwise only fail on the cluster.

        Raises
        ------
        ValueError
            On an invalid walltime, non-positive resources, a compression
            level outside 0–9, an output timestep that is not a multiple of
            the input timestep, an unknown VPD method, or duplicate dataset
            names.
        """
        self.output_directory = Path(self.output_directory)
        self.datasets = [d if isinstance(d, DatasetSpec) else DatasetSpec(**d) for d in self.datasets]

        # PBSConfig validates walltime, ncpus and memory.
        self.pbs_config()

        if not 0 <= self.compression_level <= 9:
            raise ValueError(f"compression_level must be between 0 and 9, got {self.compression_level}")
        if self.input_timestep_hours < 1 or self.output_timestep_hours < 1:
            raise ValueError("Timesteps must be positive numbers of hours")
        if self.output_timestep_hours % self.input_timestep_hours != 0:
            raise ValueError(
                f"Output timestep ({self.output_timestep_hours}h) must be a multiple of "
                f"the input timestep ({self.input_timestep_hours}h)"
            )
        methods = {self.vpd_method} | {p.method for d in self.datasets for p in d.processors if p.method}
        unknown = methods - VPD_METHODS
        if unknown:
            raise ValueError(f"Unknown VPD method(s) {sorted(unknown)}. Known methods: {sorted(VPD_METHODS)}")

        names = [d.name for d in self.datasets]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate dataset names: {dupes}")

    def pbs_config(self) -> PBSConfig:
        """PBS resources for heavyweight (rechunk) jobs."""
        return PBSConfig(
            self.queue,
            self.ncpus,
            self.memory,
            self.jobfs,
            self.project,
            self.walltime,
            self.email_notifications,
            self.email,
        )

    def lightweight_pbs_config(self) -> PBSConfig:
        """PBS resources for cheap I/O-bound jobs (mergetime, mean, cleanup)."""
        return PBSConfig.lightweight(
            self.jobfs, self.project, self.walltime, self.email_notifications, self.email
        )

    def get_dataset(self, name: str) -> DatasetSpec:
        """Look up a dataset by name."""
        for dataset in self.datasets:
            if dataset.name == name:
                return dataset
        raise KeyError(f"Unknown dataset: {name!r}")

    @classmethod
    def from_yaml(cls, path: str | Path) -> ProcessingConfig:
        """Load config from a YAML file, overriding defaults.

        Raises
        ------
        ValueError
            If the file contains invalid YAML syntax or invalid settings.
        FileNotFoundError
            If *path* does not exist.
        """
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

        path_fields = {"output_directory", "grid_file", "log_file"}
        for key in path_fields:
            if data.get(key) is not None:
                data[key] = Path(data[key])

        if "datasets" in data:
            data["datasets"] = [DatasetSpec(**d) for d in data["datasets"] or []]

        return cls(**data)
