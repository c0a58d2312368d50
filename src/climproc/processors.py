"""processors.py — producers of jobs for one target variable.

Every processor exposes the same capability contract (:class:`Processor`):

* ``target_variable`` — the variable it is responsible for;
* ``output_format`` — the one format it ultimately produces;
* ``intermediate_outputs`` — further formats produced along the way;
* ``dependencies`` — formats that must already exist before it runs;
* ``create_jobs(dataset, context)`` — write the job scripts and return the
  :class:`~climproc.models.Job` records.

Variants
--------
:class:`StandardVariableProcessor`
    preprocess → mergetime → rechunk for a variable read straight from the
    input dataset.
:class:`MergetimeProcessor`
    preprocess → mergetime only; for variables that are merely inputs to a
    derived variable.
:class:`MeanProcessor`
    mean of two or more timeseries (e.g. ``tas`` from ``tasmin``/``tasmax``).
:class:`VpdCalculator`
    vapour pressure deficit from ``tas``, ``huss`` and ``ps``.
:class:`RechunkProcessorDecorator`
    wraps another processor and appends a rechunk stage to its timeseries
    outputs.

Upstream jobs are always looked up through ``context.resolver.get_job``;
processors never hold references to each other.
"""
from __future__ import annotations

__all__ = [
    "Processor",
    "StandardVariableProcessor",
    "MergetimeProcessor",
    "MeanProcessor",
    "VpdCalculator",
    "RechunkProcessorDecorator",
    "VPD_DEPENDENCIES",
]

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from climproc.models import ClimateVariable, ClimateVariableFormat, Job, ProcessingStage
from climproc.paths import PathType
from climproc.scripts import (
    get_storage_directives,
    render_template,
    write_mergetime_script,
    write_preprocessing_script,
    write_rechunk_script,
)

if TYPE_CHECKING:
    from climproc.context import JobCreationContext
    from climproc.datasets import ClimateDataset


#: Formats the VPD calculation reads.
VPD_DEPENDENCIES = frozenset({
    ClimateVariableFormat.timeseries(ClimateVariable.TEMPERATURE),
    ClimateVariableFormat.timeseries(ClimateVariable.SPECIFIC_HUMIDITY),
    ClimateVariableFormat.timeseries(ClimateVariable.SURFACE_PRESSURE),
})

# Saturation vapour pressure (Pa) for temperature T in degC, per method.
_ESAT_EQUATIONS = {
    "magnus": "_esat=0.611*exp((17.27*{t})/({t}+237.3))*1000",
    "buck1981": "_esat=0.61121*exp((18.678-{t}/234.5)*({t}/(257.14+{t})))*1000",
    "alduchov_eskridge1996": "_esat=0.61094*exp((17.625*{t})/({t}+243.04))*1000",
    "allen1998": "_esat=0.6108*exp((17.27*{t})/({t}+237.3))*1000",
    "sonntag1990": "_esat=0.61078*exp((17.08085*{t})/({t}+234.175))*1000",
}


@runtime_checkable
class Processor(Protocol):
    """Capability contract consumed by the sorter and the orchestrator."""

    @property
    def target_variable(self) -> ClimateVariable: ...

    @property
    def output_format(self) -> ClimateVariableFormat: ...

    @property
    def intermediate_outputs(self) -> list[ClimateVariableFormat]: ...

    @property
    def dependencies(self) -> frozenset[ClimateVariableFormat]: ...

    def create_jobs(self, dataset: ClimateDataset, context: JobCreationContext) -> list[Job]: ...


# ---------------------------------------------------------------------------
# Shared job builders
# ---------------------------------------------------------------------------


def _job_name(prefix: str, name: str, dataset: ClimateDataset) -> str:
    return f"{prefix}_{name}_{dataset.name}"


def _create_preprocessing_job(
    variable: ClimateVariable,
    dataset: ClimateDataset,
    context: JobCreationContext,
) -> Job:
    """Write the preprocessing script for *variable*; the job has no dependencies."""
    input_info = dataset.get_variable_info(variable)
    target_info = context.variables.get_output_requirements(variable)

    in_dir = dataset.get_input_files_directory(variable)
    out_dir = context.path_manager.get_dataset_path(dataset, PathType.WORKING) / target_info.name
    grid_file = context.config.grid_file

    required = [in_dir, out_dir] + ([grid_file] if grid_file else [])
    job_name = _job_name("preprocess", input_info.name, dataset)
    with context.file_writer_factory.create(job_name) as writer:
        context.pbs_preprocessing.write_header(writer, job_name, get_storage_directives(required))
        write_preprocessing_script(
            writer,
            in_dir,
            out_dir,
            input_info.name,
            target_info.name,
            target_info.units,
            context.variables.get_aggregation_method(variable),
            context.config.input_timestep_hours,
            context.config.output_timestep_hours,
            grid_file,
        )
    return Job(job_name, writer.file_path, ClimateVariableFormat.preprocessed(variable), out_dir, ())


def _create_mergetime_job(
    variable: ClimateVariable,
    dataset: ClimateDataset,
    context: JobCreationContext,
    preprocessing_job: Job,
) -> Job:
    """Write the mergetime script which reads the output of *preprocessing_job*."""
    input_info = dataset.get_variable_info(variable)
    in_dir = preprocessing_job.output_path
    out_file = context.path_manager.get_dataset_file_name(
        dataset, variable, PathType.WORKING, context.variables
    )

    job_name = _job_name("mergetime", input_info.name, dataset)
    with context.file_writer_factory.create(job_name) as writer:
        context.pbs_lightweight.write_header(writer, job_name, get_storage_directives([in_dir, out_file]))
        write_mergetime_script(writer, in_dir, out_file)
    return Job(
        job_name,
        writer.file_path,
        ClimateVariableFormat.timeseries(variable),
        out_file,
        (preprocessing_job,),
    )


def _create_rechunk_job(
    variable: ClimateVariable,
    dataset: ClimateDataset,
    context: JobCreationContext,
    source_job: Job,
    cleanup: bool,
) -> Job:
    """Write the rechunk script for the timeseries produced by *source_job*."""
    output_name = context.variables.get_output_requirements(variable).name
    in_file = source_job.output_path
    # The source job already chose a meaningful file name.
    out_file = context.path_manager.get_dataset_path(dataset, PathType.OUTPUT) / in_file.name

    job_name = _job_name("rechunk", output_name, dataset)
    with context.file_writer_factory.create(job_name) as writer:
        context.pbs_heavyweight.write_header(writer, job_name, get_storage_directives([in_file, out_file]))
        write_rechunk_script(
            writer,
            in_file,
            out_file,
            context.path_manager,
            context.config.chunk_size_spatial,
            context.config.chunk_size_time,
            context.config.compression_level,
            cleanup,
        )
    return Job(
        job_name,
        writer.file_path,
        ClimateVariableFormat.rechunked(variable),
        out_file,
        (source_job,),
    )


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class StandardVariableProcessor:
    """Preprocess, merge and rechunk a variable read directly from the dataset.

    Only the mergetime and rechunk jobs are returned; the preprocessing job
    is reachable as the mergetime job's dependency.

    Parameters
    ----------
    variable:
        The variable to process.
    cleanup:
        Whether the rechunk job may delete the intermediate timeseries file.
        Must be ``False`` when another processor reads that timeseries.
    """

    def __init__(self, variable: ClimateVariable, cleanup: bool = True) -> None:
        self._variable = variable
        self.cleanup = cleanup

    @property
    def target_variable(self) -> ClimateVariable:
        return self._variable

    @property
    def output_format(self) -> ClimateVariableFormat:
        return ClimateVariableFormat.rechunked(self._variable)

    @property
    def intermediate_outputs(self) -> list[ClimateVariableFormat]:
        return [ClimateVariableFormat.timeseries(self._variable)]

    @property
    def dependencies(self) -> frozenset[ClimateVariableFormat]:
        return frozenset()

    def create_jobs(self, dataset: ClimateDataset, context: JobCreationContext) -> list[Job]:
        preprocessing = _create_preprocessing_job(self._variable, dataset, context)
        mergetime = _create_mergetime_job(self._variable, dataset, context, preprocessing)
        rechunk = _create_rechunk_job(self._variable, dataset, context, mergetime, self.cleanup)
        return [mergetime, rechunk]

    def __repr__(self) -> str:
        return f"StandardVariableProcessor({self._variable})"


class MergetimeProcessor:
    """Preprocess and merge a variable without rechunking it.

    Intended for variables that are only an input to another processor.
    """

    def __init__(self, variable: ClimateVariable) -> None:
        self._variable = variable

    @property
    def target_variable(self) -> ClimateVariable:
        return self._variable

    @property
    def output_format(self) -> ClimateVariableFormat:
        return ClimateVariableFormat.timeseries(self._variable)

    @property
    def intermediate_outputs(self) -> list[ClimateVariableFormat]:
        return []

    @property
    def dependencies(self) -> frozenset[ClimateVariableFormat]:
        return frozenset()

    def create_jobs(self, dataset: ClimateDataset, context: JobCreationContext) -> list[Job]:
        preprocessing = _create_preprocessing_job(self._variable, dataset, context)
        mergetime = _create_mergetime_job(self._variable, dataset, context, preprocessing)
        return [preprocessing, mergetime]

    def __repr__(self) -> str:
        return f"MergetimeProcessor({self._variable})"


class MeanProcessor:
    """Mean at each timestep of two or more timeseries variables.

    When *output_file_name* is ``None`` the result is written to the
    variable's standard working file, where downstream processors expect it.

    Raises
    ------
    ValueError
        If fewer than two inputs are given.
    """

    def __init__(
        self,
        output_file_name: str | None,
        variable: ClimateVariable,
        inputs: list[ClimateVariable],
    ) -> None:
        if len(inputs) < 2:
            raise ValueError(f"{type(self).__name__} requires at least two inputs, got {len(inputs)}")
        self.output_file_name = output_file_name
        self._variable = variable
        self.inputs = list(inputs)

    @property
    def target_variable(self) -> ClimateVariable:
        return self._variable

    @property
    def output_format(self) -> ClimateVariableFormat:
        return ClimateVariableFormat.timeseries(self._variable)

    @property
    def intermediate_outputs(self) -> list[ClimateVariableFormat]:
        return []

    @property
    def dependencies(self) -> frozenset[ClimateVariableFormat]:
        return frozenset(ClimateVariableFormat.timeseries(v) for v in self.inputs)

    def create_jobs(self, dataset: ClimateDataset, context: JobCreationContext) -> list[Job]:
        pm = context.path_manager
        input_files = [
            pm.get_dataset_file_name(dataset, v, PathType.WORKING, context.variables)
            for v in self.inputs
        ]
        if self.output_file_name is None:
            out_file = pm.get_dataset_file_name(dataset, self._variable, PathType.WORKING, context.variables)
        else:
            out_file = pm.get_dataset_path(dataset, PathType.WORKING) / self.output_file_name
        if out_file in input_files:
            raise ValueError(f"Output file {out_file} conflicts with an input file")

        input_names = [context.variables.get_output_requirements(v).name for v in self.inputs]
        output_name = context.variables.get_output_requirements(self._variable).name

        job_name = f"calc_mean_{self._variable}_{dataset.name}"
        with context.file_writer_factory.create(job_name) as writer:
            context.pbs_lightweight.write_header(
                writer, job_name, get_storage_directives([*input_files, out_file])
            )
            writer.write(
                render_template(
                    "mean.sh.jinja",
                    input_files=input_files,
                    output_file=out_file,
                    input_names=input_names,
                    output_name=output_name,
                )
            )

        upstream = [context.resolver.get_job(ClimateVariableFormat.timeseries(v)) for v in self.inputs]
        return [Job(job_name, writer.file_path, self.output_format, out_file, upstream)]

    def __repr__(self) -> str:
        inputs = ", ".join(str(v) for v in self.inputs)
        return f"MeanProcessor({self._variable} <- [{inputs}])"


class VpdCalculator:
    """Vapour pressure deficit from temperature, specific humidity and surface pressure.

    Raises
    ------
    ValueError
        If *method* is not one of the supported estimation methods.
    """

    def __init__(self, method: str = "magnus") -> None:
        if method not in _ESAT_EQUATIONS:
            raise ValueError(
                f"Unsupported VPD calculation method {method!r}. "
                f"Known methods: {sorted(_ESAT_EQUATIONS)}"
            )
        self.method = method

    @property
    def target_variable(self) -> ClimateVariable:
        return ClimateVariable.VPD

    @property
    def output_format(self) -> ClimateVariableFormat:
        return ClimateVariableFormat.timeseries(ClimateVariable.VPD)

    @property
    def intermediate_outputs(self) -> list[ClimateVariableFormat]:
        return []

    @property
    def dependencies(self) -> frozenset[ClimateVariableFormat]:
        return VPD_DEPENDENCIES

    def equations(self, context: JobCreationContext) -> list[str]:
        """Return the cdo ``exprf`` equations for the configured method."""
        names = context.variables
        tas = names.get_output_requirements(ClimateVariable.TEMPERATURE).name
        huss = names.get_output_requirements(ClimateVariable.SPECIFIC_HUMIDITY).name
        ps = names.get_output_requirements(ClimateVariable.SURFACE_PRESSURE).name
        vpd = names.get_output_requirements(ClimateVariable.VPD).name
        return [
            f"# Saturation vapour pressure (Pa) ({tas} in degC)",
            _ESAT_EQUATIONS[self.method].format(t=tas) + ";",
            "# Actual vapour pressure (Pa)",
            f"_e=({huss}*{ps})/(0.622+0.378*{huss});",
            "# VPD (kPa)",
            f"{vpd}=(_esat-_e)/1000;",
        ]

    def create_jobs(self, dataset: ClimateDataset, context: JobCreationContext) -> list[Job]:
        pm = context.path_manager
        files = {
            var: pm.get_dataset_file_name(dataset, var, PathType.WORKING, context.variables)
            for var in (
                ClimateVariable.SPECIFIC_HUMIDITY,
                ClimateVariable.SURFACE_PRESSURE,
                ClimateVariable.TEMPERATURE,
            )
        }
        out_file = pm.get_dataset_file_name(dataset, ClimateVariable.VPD, PathType.WORKING, context.variables)

        job_name = f"calc_vpd_{dataset.name}"
        with context.file_writer_factory.create(job_name) as writer:
            context.pbs_lightweight.write_header(
                writer, job_name, get_storage_directives([*files.values(), out_file])
            )
            writer.write(
                render_template(
                    "vpd.sh.jinja",
                    huss_file=files[ClimateVariable.SPECIFIC_HUMIDITY],
                    ps_file=files[ClimateVariable.SURFACE_PRESSURE],
                    tas_file=files[ClimateVariable.TEMPERATURE],
                    output_file=out_file,
                    equations=self.equations(context),
                )
            )

        upstream = [
            context.resolver.get_job(ClimateVariableFormat.timeseries(var))
            for var in (
                ClimateVariable.TEMPERATURE,
                ClimateVariable.SPECIFIC_HUMIDITY,
                ClimateVariable.SURFACE_PRESSURE,
            )
        ]
        return [Job(job_name, writer.file_path, self.output_format, out_file, upstream)]

    def __repr__(self) -> str:
        return f"VpdCalculator({self.method!r})"


class RechunkProcessorDecorator:
    """Wraps another processor and rechunks every timeseries job it creates.

    ``target_variable`` and ``dependencies`` come from the inner processor;
    the inner processor's own output becomes an intermediate output.
    """

    def __init__(self, inner: Processor, cleanup: bool = True) -> None:
        self.inner = inner
        self.cleanup = cleanup

    @property
    def target_variable(self) -> ClimateVariable:
        return self.inner.target_variable

    @property
    def output_format(self) -> ClimateVariableFormat:
        return ClimateVariableFormat.rechunked(self.target_variable)

    @property
    def intermediate_outputs(self) -> list[ClimateVariableFormat]:
        return [*self.inner.intermediate_outputs, self.inner.output_format]

    @property
    def dependencies(self) -> frozenset[ClimateVariableFormat]:
        return self.inner.dependencies

    def create_jobs(self, dataset: ClimateDataset, context: JobCreationContext) -> list[Job]:
        jobs = list(self.inner.create_jobs(dataset, context))
        timeseries = [j for j in jobs if j.output is not None and j.output.stage == ProcessingStage.TIMESERIES]
        for job in timeseries:
            jobs.append(_create_rechunk_job(self.target_variable, dataset, context, job, self.cleanup))
        return jobs

    def __repr__(self) -> str:
        return f"RechunkProcessorDecorator({self.inner!r})"
