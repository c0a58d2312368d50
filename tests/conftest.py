import pytest

from climproc.config import DatasetSpec, ProcessingConfig, ProcessorSpec
from climproc.datasets import ClimateDataset
from climproc.models import Job
from climproc.orchestrator import ScriptOrchestrator


# ---------------------------------------------------------------------------
# Fake processors and datasets
# ---------------------------------------------------------------------------

class FakeProcessor:
    """Processor stub with explicit formats; creates one job per produced format.

    Jobs resolve their dependencies through ``context.resolver`` exactly like
    the real processors, but no script content is written.
    """

    def __init__(self, name, output, intermediates=(), dependencies=()):
        self.name = name
        self._output = output
        self._intermediates = list(intermediates)
        self._dependencies = frozenset(dependencies)

    @property
    def target_variable(self):
        return self._output.variable

    @property
    def output_format(self):
        return self._output

    @property
    def intermediate_outputs(self):
        return list(self._intermediates)

    @property
    def dependencies(self):
        return self._dependencies

    def create_jobs(self, dataset, context):
        upstream = tuple(context.resolver.get_job(fmt) for fmt in sorted(self._dependencies, key=str))
        jobs = []
        previous = upstream
        for fmt in [*self._intermediates, self._output]:
            job = Job(
                f"{self.name}_{fmt.stage.value}",
                f"/scripts/{self.name}_{fmt.stage.value}",
                fmt,
                f"/out/{self.name}_{fmt.stage.value}.nc",
                previous,
            )
            jobs.append(job)
            previous = (job,)
        return jobs

    def __repr__(self):
        return f"FakeProcessor({self.name!r})"


class FakeDataset:
    """Dataset stub returning a fixed list of processors."""

    def __init__(self, name, processors):
        self.name = name
        self._processors = list(processors)

    def get_output_directory(self):
        return self.name

    def get_processors(self, context=None):
        return list(self._processors)


@pytest.fixture
def make_processor():
    """Factory for :class:`FakeProcessor`: ``make_processor(name, output, intermediates, dependencies)``."""
    return FakeProcessor


@pytest.fixture
def make_dataset():
    """Factory for :class:`FakeDataset`: ``make_dataset(name, processors)``."""
    return FakeDataset


@pytest.fixture
def make_job():
    """Factory for bare jobs: ``make_job(name, output=None, dependencies=())``."""

    def _make(name, output=None, dependencies=()):
        return Job(name, f"/scripts/{name}", output, f"/out/{name}", dependencies)

    return _make


# ---------------------------------------------------------------------------
# Config and dataset fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def cfg(tmp_path):
    """Minimal ProcessingConfig writing under a temporary directory."""
    return ProcessingConfig(
        output_directory=tmp_path / "out",
        project="ab12",
        walltime="02:00:00",
        ncpus=4,
        memory=16,
    )


@pytest.fixture
def dataset_spec(tmp_path):
    """SILO-like dataset: tas and pr directly, vpd derived from tas/huss/ps."""
    return DatasetSpec(
        name="silo",
        input_directory=tmp_path / "input" / "silo",
        variables={
            "tas": {"name": "t_avg", "units": "degC"},
            "pr": {"name": "daily_rain", "units": "mm"},
            "huss": {"name": "huss", "units": "1"},
            "ps": {"name": "mslp", "units": "hPa"},
        },
        processors=[
            ProcessorSpec(kind="vpd", variable="vpd", rechunk=True),
            ProcessorSpec(kind="standard", variable="tas"),
            ProcessorSpec(kind="standard", variable="pr"),
            ProcessorSpec(kind="mergetime", variable="huss"),
            ProcessorSpec(kind="mergetime", variable="ps"),
        ],
    )


@pytest.fixture
def dataset(dataset_spec, cfg):
    return ClimateDataset.from_spec(dataset_spec, cfg)


@pytest.fixture
def orchestrator(cfg):
    return ScriptOrchestrator(cfg)


@pytest.fixture
def context(orchestrator):
    """Job creation context with an empty resolver."""
    return orchestrator.create_context()
