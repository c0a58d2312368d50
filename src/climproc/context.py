from __future__ import annotations

__all__ = ["JobCreationContext"]

from dataclasses import dataclass

from climproc.config import ProcessingConfig
from climproc.paths import PathManager
from climproc.registry import DependencyResolver
from climproc.scripts import FileWriterFactory, PBSWriter
from climproc.variables import VariableManager


@dataclass
class JobCreationContext:
    """Everything a processor needs while creating its jobs.

    ``resolver`` is the only part the dependency graph engine relies on:
    processors call ``resolver.get_job(fmt)`` for each declared dependency.
    The remaining collaborators write and place script content.
    """

    config: ProcessingConfig
    path_manager: PathManager
    file_writer_factory: FileWriterFactory
    variables: VariableManager
    pbs_lightweight: PBSWriter
    pbs_preprocessing: PBSWriter
    pbs_heavyweight: PBSWriter
    resolver: DependencyResolver
