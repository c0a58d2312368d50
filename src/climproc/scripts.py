"""scripts.py — writing PBS job scripts to disk.

The dependency graph engine treats everything in this module as an opaque
collaborator: processors use it to put script content on disk and record
the resulting path in their :class:`~climproc.models.Job`.

* :class:`ScriptWriter` / :class:`FileWriterFactory` — executable script
  files under ``<output>/scripts``.
* :class:`PBSConfig` / :class:`PBSWriter` — the ``#PBS`` header shared by
  every job script.
* ``write_*_script`` — the body of the preprocessing, mergetime and
  rechunk jobs (cdo and nco command lines).

Every script layout is a jinja2 template under ``climproc/templates`` and
is rendered through :func:`render_template`.
"""
from __future__ import annotations

__all__ = [
    "ScriptWriter",
    "FileWriterFactory",
    "PBSConfig",
    "PBSWriter",
    "get_storage_directives",
    "write_preprocessing_script",
    "write_mergetime_script",
    "write_rechunk_script",
    "CDO_COMMON_ARGS",
    "AUTO_GENERATED_NOTICE",
    "render_template",
]

import logging
import re
from dataclasses import dataclass
from importlib.resources import files
from pathlib import Path
from typing import Any, Iterable

from jinja2 import BaseLoader, Environment, StrictUndefined

from climproc.paths import PathManager, PathType
from climproc.variables import AggregationMethod

logger = logging.getLogger(__name__)

#: Arguments passed to every cdo invocation.
CDO_COMMON_ARGS = "-L -O -v -z zip1"

AUTO_GENERATED_NOTICE = "# This script was automatically generated. Do not modify."

_WALLTIME_RE = re.compile(r"^\d{1,3}:[0-5]\d:[0-5]\d$")

# "{#" occurs in bash array expansions, so template comments use "###".
jinja_environment = Environment(
    loader=BaseLoader(),
    comment_start_string="###",
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)
jinja_environment.globals.update(auto_generated_notice=AUTO_GENERATED_NOTICE, cdo_args=CDO_COMMON_ARGS)


def _retrieve_from_library(filename: str) -> str:
    return files("climproc").joinpath("templates", filename).read_text(encoding="utf-8")


def render_template(filename: str, **variables: Any) -> str:
    """Render the packaged template ``templates/<filename>`` with *variables*."""
    template = jinja_environment.from_string(_retrieve_from_library(filename))
    return template.render(**variables)


class ScriptWriter:
    """Writes one executable script file.

    Use as a context manager; the file is created (mode 0o755) on entry and
    closed on exit.
    """

    def __init__(self, file_path: str | Path) -> None:
        self.file_path = Path(file_path)
        self._fh = None

    def __enter__(self) -> ScriptWriter:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.file_path.open("w")
        self.file_path.chmod(0o755)
        logger.debug("writing script %s", self.file_path)
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def write(self, content: str) -> None:
        if self._fh is None:
            raise RuntimeError(f"Script {self.file_path} is not open for writing")
        self._fh.write(content)

    def write_line(self, line: str = "") -> None:
        self.write(line + "\n")

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class FileWriterFactory:
    """Creates :class:`ScriptWriter` instances in the script directory."""

    def __init__(self, path_manager: PathManager) -> None:
        self.path_manager = path_manager

    def create(self, name: str) -> ScriptWriter:
        return ScriptWriter(self.path_manager.get_base_path(PathType.SCRIPT) / name)


@dataclass(frozen=True)
class PBSConfig:
    """Resources requested in a PBS job header."""

    queue: str
    ncpus: int
    memory: int  # GiB
    jobfs: int  # GiB
    project: str
    walltime: str  # HH:MM:SS
    email_notifications: str = ""  # any of "a", "b", "e"
    email: str | None = None

    def __post_init__(self) -> None:
        if not _WALLTIME_RE.match(self.walltime):
            raise ValueError(f"Invalid walltime {self.walltime!r}. Expected HH:MM:SS")
        if self.ncpus < 1:
            raise ValueError(f"ncpus must be positive, got {self.ncpus}")
        if self.memory < 1:
            raise ValueError(f"memory must be positive, got {self.memory}")

    @classmethod
    def lightweight(
        cls,
        jobfs: int,
        project: str,
        walltime: str,
        email_notifications: str = "",
        email: str | None = None,
    ) -> PBSConfig:
        """Single-core copyq configuration for cheap I/O-bound jobs."""
        return cls("copyq", 1, 4, jobfs, project, walltime, email_notifications, email)


def get_storage_directives(paths: Iterable[str | Path]) -> list[str]:
    """Return the sorted PBS storage directives (``gdata/xy12``) needed for *paths*."""
    directives: set[str] = set()
    for path in paths:
        parts = Path(path).parts
        if len(parts) >= 4 and parts[1] == "g" and parts[2] == "data":
            directives.add(f"gdata/{parts[3]}")
        elif len(parts) >= 3 and parts[1] == "scratch":
            directives.add(f"scratch/{parts[2]}")
    return sorted(directives)


class PBSWriter:
    """Writes the PBS header and common shell preamble of a job script."""

    def __init__(self, config: PBSConfig, path_manager: PathManager) -> None:
        self.config = config
        self.path_manager = path_manager

    def write_header(
        self,
        writer: ScriptWriter,
        job_name: str,
        storage_directives: Iterable[str] = (),
    ) -> None:
        writer.write(
            render_template(
                "pbs_header.sh.jinja",
                job_name=job_name,
                pbs=self.config,
                log_file=self.path_manager.get_base_path(PathType.LOG) / f"{job_name}.log",
                stream_file=self.path_manager.get_base_path(PathType.STREAM) / f"{job_name}.out",
                storage_directives=list(storage_directives),
            )
        )


def write_preprocessing_script(
    writer: ScriptWriter,
    input_directory: Path,
    output_directory: Path,
    input_name: str,
    output_name: str,
    output_units: str,
    aggregation: AggregationMethod,
    input_timestep_hours: int,
    output_timestep_hours: int,
    grid_file: Path | None = None,
) -> None:
    """Rename, convert units, aggregate and (optionally) remap each input file."""
    operators: list[str] = []
    if input_name != output_name:
        operators.append(f"-chname,'{input_name}','{output_name}'")
    operators.append(f"-setattribute,'{output_name}@units={output_units}'")
    if output_timestep_hours != input_timestep_hours:
        steps = output_timestep_hours // input_timestep_hours
        operators.append(f"-timsel{aggregation},{steps}")
    if grid_file is not None:
        operators.append(f"-remapcon,'{grid_file}'")

    writer.write(
        render_template(
            "preprocess.sh.jinja",
            input_directory=input_directory,
            output_directory=output_directory,
            operators=operators,
        )
    )


def write_mergetime_script(writer: ScriptWriter, input_directory: Path, output_file: Path) -> None:
    """Merge every preprocessed file in *input_directory* into *output_file*."""
    writer.write(render_template("mergetime.sh.jinja", input_directory=input_directory, output_file=output_file))


def write_rechunk_script(
    writer: ScriptWriter,
    input_file: Path,
    output_file: Path,
    path_manager: PathManager,
    spatial_chunk_size: int,
    time_chunk_size: int,
    compression_level: int,
    cleanup: bool,
) -> None:
    """Reorder dimensions, rechunk and compress *input_file*, then checksum the result."""
    # Relative path keeps the checksum file portable.
    output_root = path_manager.get_base_path(PathType.OUTPUT)
    try:
        relative = Path(output_file).relative_to(output_root)
    except ValueError:
        relative = Path(output_file)

    writer.write(
        render_template(
            "rechunk.sh.jinja",
            input_file=input_file,
            output_file=output_file,
            spatial_chunk_size=spatial_chunk_size,
            time_chunk_size=time_chunk_size,
            compression_level=compression_level,
            output_root=output_root,
            relative_path=relative,
            checksum_file=path_manager.get_checksum_file_path(),
            cleanup=cleanup,
        )
    )
