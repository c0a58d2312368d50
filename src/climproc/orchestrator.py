"""orchestrator.py — turn a dataset into PBS job scripts and a submission script.

:class:`ScriptOrchestrator` drives one generation run per dataset:

1. sort the dataset's processors so that producers precede consumers;
2. let each processor write its job scripts, registering the resulting jobs
   with the run's :class:`~climproc.registry.DependencyResolver` before the
   next processor runs;
3. write a cleanup job that depends on every other job;
4. write ``submit_<dataset>``, a bash script that ``qsub``s every job with
   ``-W depend=afterok:...`` chaining.

Typical usage::

    from climproc.orchestrator import ScriptOrchestrator

    orchestrator = ScriptOrchestrator(config)
    script = orchestrator.generate_scripts(dataset)
    ScriptOrchestrator.generate_wrapper_script(config.output_directory, [script])
"""
from __future__ import annotations

__all__ = ["ScriptOrchestrator"]

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from climproc.config import ProcessingConfig
from climproc.context import JobCreationContext
from climproc.errors import CycleError, PlanError
from climproc.models import Job
from climproc.paths import PathManager, PathType
from climproc.registry import DependencyResolver
from climproc.scripts import (
    FileWriterFactory,
    PBSWriter,
    ScriptWriter,
    get_storage_directives,
    render_template,
)
from climproc.sorter import sort_by_dependencies
from climproc.variables import VariableManager

if TYPE_CHECKING:
    from climproc.audit import AuditLogger
    from climproc.datasets import ClimateDataset

logger = logging.getLogger(__name__)


class ScriptOrchestrator:
    """Generates every script needed to process a dataset.

    Parameters
    ----------
    config:
        Run configuration (PBS resources and processing settings).
    path_manager:
        Directory layout. Defaults to one rooted at ``config.output_directory``.
    file_writer_factory:
        Creates the script writers. Defaults to writing under the path
        manager's script directory.
    audit:
        Optional audit log receiving ``job_created``, ``generated`` and
        ``error`` events.
    """

    def __init__(
        self,
        config: ProcessingConfig,
        path_manager: PathManager | None = None,
        file_writer_factory: FileWriterFactory | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self.config = config
        self.path_manager = path_manager or PathManager(config.output_directory)
        self.file_writer_factory = file_writer_factory or FileWriterFactory(self.path_manager)
        self.audit = audit
        # Dataset name -> every job of its last run, in submission order.
        self.generated: dict[str, list[Job]] = {}
        self.variables = VariableManager()

        self.pbs_heavyweight = PBSWriter(config.pbs_config(), self.path_manager)
        self.pbs_lightweight = PBSWriter(config.lightweight_pbs_config(), self.path_manager)
        self.pbs_preprocessing = PBSWriter(config.pbs_config(), self.path_manager)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def create_context(self, resolver: DependencyResolver | None = None) -> JobCreationContext:
        """Return a job creation context backed by a fresh (or the given) resolver."""
        return JobCreationContext(
            config=self.config,
            path_manager=self.path_manager,
            file_writer_factory=self.file_writer_factory,
            variables=self.variables,
            pbs_lightweight=self.pbs_lightweight,
            pbs_preprocessing=self.pbs_preprocessing,
            pbs_heavyweight=self.pbs_heavyweight,
            resolver=resolver if resolver is not None else DependencyResolver(),
        )

    def create_jobs(self, dataset: ClimateDataset) -> list[Job]:
        """Sort the dataset's processors and create their jobs in order.

        Returns the registered jobs in registration order.

        Raises
        ------
        PlanError
            Any sorting or dependency resolution failure, unchanged.
        """
        self.path_manager.create_directory_tree(dataset)
        context = self.create_context()

        processors = sort_by_dependencies(dataset.get_processors(context))
        for processor in processors:
            logger.info("dataset %s: creating jobs for %r", dataset.name, processor)
            jobs = processor.create_jobs(dataset, context)
            for job in jobs:
                logger.debug("created job %r", job)
                if self.audit is not None:
                    self.audit.log(
                        "job_created",
                        dataset=dataset.name,
                        job=job.name,
                        output=str(job.output),
                        script=str(job.script_path),
                    )
            context.resolver.add_jobs(jobs)
        return context.resolver.get_jobs()

    def generate_scripts(self, dataset: ClimateDataset) -> Path:
        """Generate all scripts for *dataset* and return the submission script path.

        Raises
        ------
        PlanError
            If the processors cannot be ordered (cycle, missing or duplicate
            producer) or a dependency cannot be resolved. No submission
            script is written in that case.
        """
        logger.info("generating scripts for dataset %s", dataset.name)
        try:
            jobs = self.create_jobs(dataset)
        except PlanError as exc:
            if self.audit is not None:
                self.audit.log("error", dataset=dataset.name, detail=str(exc))
            raise

        cleanup = self.create_cleanup_job(dataset, jobs)
        self.generated[dataset.name] = [*self.order_jobs(jobs), cleanup]

        name = f"submit_{dataset.name}"
        with self.file_writer_factory.create(name) as writer:
            self.write_submission_script(
                writer,
                dataset.name,
                jobs,
                cleanup,
                self.path_manager.get_base_path(PathType.STREAM),
            )

        logger.info("dataset %s: %d job(s), submission script %s", dataset.name, len(jobs), writer.file_path)
        if self.audit is not None:
            self.audit.log("generated", dataset=dataset.name, jobs=len(jobs), script=str(writer.file_path))
        return writer.file_path

    # ------------------------------------------------------------------
    # Cleanup job
    # ------------------------------------------------------------------

    def create_cleanup_job(self, dataset: ClimateDataset, jobs: Iterable[Job]) -> Job:
        """Write the script removing the dataset's working directory.

        The returned job depends on every job in *jobs*.
        """
        work_dir = self.path_manager.get_dataset_path(dataset, PathType.WORKING)
        job_name = f"cleanup_{dataset.name}"
        with self.file_writer_factory.create(job_name) as writer:
            self.pbs_lightweight.write_header(writer, job_name, get_storage_directives([work_dir]))
            writer.write(render_template("cleanup.sh.jinja", working_directory=work_dir))
        return Job(job_name, writer.file_path, None, work_dir, tuple(jobs))

    # ------------------------------------------------------------------
    # Submission script
    # ------------------------------------------------------------------

    @staticmethod
    def order_jobs(jobs: Iterable[Job]) -> list[Job]:
        """Return every job reachable from *jobs*, each after all its dependencies.

        Jobs are taken in the given order and each appears once. Jobs that
        are only reachable as a dependency (such as preprocessing jobs) are
        included.

        Raises
        ------
        CycleError
            If the job graph contains a cycle.
        """
        result: list[Job] = []
        emitted: set[Job] = set()
        visiting: list[Job] = []

        def visit(job: Job) -> None:
            if job in emitted:
                return
            if job in visiting:
                cycle = visiting[visiting.index(job):] + [job]
                raise CycleError([j.name for j in cycle])
            visiting.append(job)
            for dependency in job.dependencies:
                visit(dependency)
            visiting.pop()
            emitted.add(job)
            result.append(job)

        for job in jobs:
            visit(job)
        return result

    def write_submission_script(
        self,
        writer: ScriptWriter,
        dataset_name: str,
        jobs: Iterable[Job],
        cleanup: Job,
        output_dir: str | Path,
    ) -> None:
        """Write the bash script that submits *jobs* and then *cleanup*.

        Each job is submitted after all of its dependencies, with a
        ``-W depend=afterok:`` clause naming their PBS job IDs. The cleanup
        job depends on every job submitted by the script, or on nothing
        when no other job was submitted.
        """
        writer.write(
            render_template(
                "submit.sh.jinja",
                dataset_name=dataset_name,
                output_dir=output_dir,
                ordered_jobs=self.order_jobs(jobs),
                cleanup=cleanup,
            )
        )

    # ------------------------------------------------------------------
    # Wrapper script
    # ------------------------------------------------------------------

    @staticmethod
    def generate_wrapper_script(
        output_directory: str | Path,
        scripts: Iterable[str | Path],
        audit: AuditLogger | None = None,
    ) -> Path:
        """Write ``<output_directory>/scripts/wrapper``, which runs every submission script."""
        scripts = [str(s) for s in scripts]
        path = PathManager(output_directory).get_base_path(PathType.SCRIPT) / "wrapper"
        with ScriptWriter(path) as writer:
            writer.write(render_template("wrapper.sh.jinja", scripts=scripts))
        logger.info("wrapper script %s runs %d submission script(s)", path, len(scripts))
        if audit is not None:
            audit.log("wrapper_written", script=str(path), scripts=scripts)
        return path
