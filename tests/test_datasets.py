"""Tests for datasets.py — ClimateDataset and the processor builders."""
from pathlib import Path

import pytest

from climproc.config import DatasetSpec, ProcessingConfig, ProcessorSpec
from climproc.datasets import ClimateDataset, build_processor
from climproc.models import ClimateVariable, ClimateVariableFormat, VariableInfo
from climproc.processors import (
    MeanProcessor,
    MergetimeProcessor,
    RechunkProcessorDecorator,
    StandardVariableProcessor,
    VpdCalculator,
)
from climproc.sorter import sort_by_dependencies


# ---------------------------------------------------------------------------
# from_spec and variable lookups
# ---------------------------------------------------------------------------


def test_from_spec_parses_variables(dataset, tmp_path):
    assert dataset.name == "silo"
    assert dataset.input_directory == tmp_path / "input" / "silo"
    assert dataset.get_variable_info(ClimateVariable.SURFACE_PRESSURE) == VariableInfo("mslp", "hPa")


def test_input_files_directory(dataset, tmp_path):
    assert dataset.get_input_files_directory(ClimateVariable.PRECIPITATION) == tmp_path / "input" / "silo" / "daily_rain"


def test_missing_variable_raises(dataset):
    with pytest.raises(KeyError, match="does not provide variable rsds"):
        dataset.get_variable_info(ClimateVariable.SHORTWAVE_RADIATION)


def test_output_directory_defaults_to_name(dataset):
    assert dataset.get_output_directory() == "silo"


def test_output_directory_override():
    spec = DatasetSpec(name="silo", input_directory="/in", output_directory=".")
    assert ClimateDataset.from_spec(spec).get_output_directory() == "."


def test_unknown_variable_name_raises():
    spec = DatasetSpec(name="silo", input_directory="/in", variables={"snow": {"name": "snow"}})
    with pytest.raises(ValueError, match="Unknown climate variable 'snow'"):
        ClimateDataset.from_spec(spec)


def test_variable_without_name_raises():
    spec = DatasetSpec(name="silo", input_directory="/in", variables={"tas": {"units": "K"}})
    with pytest.raises(ValueError, match="has no 'name'"):
        ClimateDataset.from_spec(spec)


def test_missing_units_default_to_empty():
    spec = DatasetSpec(name="silo", input_directory="/in", variables={"tas": {"name": "t"}})
    assert ClimateDataset.from_spec(spec).get_variable_info(ClimateVariable.TEMPERATURE).units == ""


# ---------------------------------------------------------------------------
# Processor builders
# ---------------------------------------------------------------------------


def test_build_standard():
    p = build_processor(ProcessorSpec(kind="standard", variable="pr"))
    assert isinstance(p, StandardVariableProcessor)
    assert p.target_variable is ClimateVariable.PRECIPITATION
    assert p.cleanup is True


def test_build_mergetime():
    assert isinstance(build_processor(ProcessorSpec(kind="mergetime", variable="huss")), MergetimeProcessor)


def test_build_mean():
    p = build_processor(ProcessorSpec(kind="mean", variable="tas", inputs=["tasmin", "tasmax"]))
    assert isinstance(p, MeanProcessor)
    assert p.inputs == [ClimateVariable.MIN_TEMPERATURE, ClimateVariable.MAX_TEMPERATURE]
    assert p.output_file_name is None


def test_build_mean_with_rechunk():
    p = build_processor(ProcessorSpec(kind="mean", variable="tas", inputs=["tasmin", "tasmax"], rechunk=True))
    assert isinstance(p, RechunkProcessorDecorator)
    assert isinstance(p.inner, MeanProcessor)


def test_build_vpd_uses_config_method():
    p = build_processor(ProcessorSpec(kind="vpd", variable="vpd"), config=ProcessingConfig(vpd_method="allen1998"))
    assert isinstance(p, VpdCalculator)
    assert p.method == "allen1998"


def test_build_vpd_processor_method_overrides_config():
    spec = ProcessorSpec(kind="vpd", variable="vpd", method="buck1981")
    assert build_processor(spec, config=ProcessingConfig()).method == "buck1981"


def test_build_unknown_variable_raises():
    with pytest.raises(ValueError, match="Unknown climate variable"):
        build_processor(ProcessorSpec(kind="standard", variable="snow"))


def test_build_standard_keeps_consumed_timeseries():
    consumed = frozenset({ClimateVariableFormat.timeseries(ClimateVariable.TEMPERATURE)})
    p = build_processor(ProcessorSpec(kind="standard", variable="tas"), consumed)
    assert p.cleanup is False


# ---------------------------------------------------------------------------
# get_processors
# ---------------------------------------------------------------------------


def test_get_processors_in_declaration_order(dataset):
    processors = dataset.get_processors()
    assert [type(p) for p in processors] == [
        RechunkProcessorDecorator,
        StandardVariableProcessor,
        StandardVariableProcessor,
        MergetimeProcessor,
        MergetimeProcessor,
    ]


def test_get_processors_keeps_timeseries_read_by_other_processors(dataset):
    _, tas, pr, _, _ = dataset.get_processors()
    assert tas.cleanup is False  # read by the vpd calculation
    assert pr.cleanup is True


def test_get_processors_sort(dataset):
    order = [p.target_variable for p in sort_by_dependencies(dataset.get_processors())]
    assert order == [
        ClimateVariable.TEMPERATURE,
        ClimateVariable.SPECIFIC_HUMIDITY,
        ClimateVariable.SURFACE_PRESSURE,
        ClimateVariable.VPD,
        ClimateVariable.PRECIPITATION,
    ]


def test_get_processors_uses_context_config_without_dataset_config(context):
    dataset = ClimateDataset(
        "silo",
        Path("/in"),
        {},
        [ProcessorSpec(kind="vpd", variable="vpd")],
    )
    context.config.vpd_method = "sonntag1990"
    (vpd,) = dataset.get_processors(context)
    assert vpd.method == "sonntag1990"
