from __future__ import annotations

__all__ = ["PathType", "PathManager"]

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from climproc.models import ClimateVariable

if TYPE_CHECKING:
    from climproc.datasets import ClimateDataset
    from climproc.variables import VariableManager


class PathType(str, Enum):
    """Kinds of directory managed under the output directory."""

    SCRIPT = "scripts"
    LOG = "logs"
    STREAM = "streams"
    WORKING = "tmp"
    OUTPUT = "output"


class PathManager:
    """Directory layout of one generation run.

    Layout under *output_directory*::

        scripts/                 generated job scripts
        logs/                    PBS job logs
        streams/                 PBS stdout/stderr streams
        tmp/<dataset>/           intermediate files
        output/<dataset>/        final (rechunked) files
        output/sha512sums        checksums of final files
    """

    def __init__(self, output_directory: str | Path) -> None:
        self.output_directory = Path(output_directory).absolute()

    def get_base_path(self, path_type: PathType) -> Path:
        """Return the base directory for *path_type*, creating it if needed."""
        path = self.output_directory / PathType(path_type).value
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_dataset_path(self, dataset: ClimateDataset, path_type: PathType) -> Path:
        """Return the dataset-level directory for *path_type*, creating it if needed.

        Only working and output directories are split per dataset; scripts,
        logs and streams share one directory across datasets.
        """
        base = self.get_base_path(path_type)
        if path_type not in (PathType.WORKING, PathType.OUTPUT):
            return base
        path = (base / dataset.get_output_directory()).resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_dataset_file_name(
        self,
        dataset: ClimateDataset,
        variable: ClimateVariable,
        path_type: PathType,
        variables: VariableManager,
    ) -> Path:
        """Return the path of *variable*'s file in the dataset directory."""
        name = variables.get_output_requirements(variable).name
        return self.get_dataset_path(dataset, path_type) / f"{name}_{dataset.name}.nc"

    def create_directory_tree(self, dataset: ClimateDataset) -> None:
        for path_type in PathType:
            self.get_dataset_path(dataset, path_type)

    def get_checksum_file_path(self) -> Path:
        return self.get_base_path(PathType.OUTPUT) / "sha512sums"
