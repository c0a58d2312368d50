from pathlib import Path

import pytest

from climproc.config import DatasetSpec, ProcessingConfig, ProcessorSpec
from climproc.scripts import PBSConfig


# ---------------------------------------------------------------------------
# ProcessingConfig defaults
# ---------------------------------------------------------------------------


def test_defaults():
    cfg = ProcessingConfig()
    assert cfg.output_directory == Path("climproc_output")
    assert cfg.queue == "normal"
    assert cfg.walltime == "01:00:00"
    assert cfg.input_timestep_hours == 1
    assert cfg.output_timestep_hours == 24
    assert cfg.compression_level == 5
    assert cfg.vpd_method == "magnus"
    assert cfg.grid_file is None
    assert cfg.log_file is None
    assert cfg.datasets == []


def test_datasets_list_independent_per_instance():
    a = ProcessingConfig()
    b = ProcessingConfig()
    a.datasets.append(DatasetSpec(name="silo", input_directory="/in"))
    assert b.datasets == []


def test_output_directory_coerced_to_path():
    assert ProcessingConfig(output_directory="/scratch/ab12/out").output_directory == Path("/scratch/ab12/out")


# ---------------------------------------------------------------------------
# PBS settings
# ---------------------------------------------------------------------------


def test_pbs_config_uses_settings():
    cfg = ProcessingConfig(project="ab12", queue="express", ncpus=8, memory=32, jobfs=10, walltime="10:00:00")
    assert cfg.pbs_config() == PBSConfig("express", 8, 32, 10, "ab12", "10:00:00", "", None)


def test_lightweight_pbs_config_uses_copyq():
    cfg = ProcessingConfig(project="ab12", ncpus=8, memory=32)
    light = cfg.lightweight_pbs_config()
    assert light.queue == "copyq"
    assert light.ncpus == 1
    assert light.project == "ab12"


@pytest.mark.parametrize("walltime", ["1:00", "01:60:00", "abc", ""])
def test_invalid_walltime_raises(walltime):
    with pytest.raises(ValueError, match="Invalid walltime"):
        ProcessingConfig(walltime=walltime)


def test_long_walltime_accepted():
    assert ProcessingConfig(walltime="100:00:00").walltime == "100:00:00"


def test_non_positive_ncpus_raises():
    with pytest.raises(ValueError, match="ncpus must be positive"):
        ProcessingConfig(ncpus=0)


def test_non_positive_memory_raises():
    with pytest.raises(ValueError, match="memory must be positive"):
        ProcessingConfig(memory=0)


# ---------------------------------------------------------------------------
# Processing settings validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("level", [-1, 10])
def test_compression_level_out_of_range_raises(level):
    with pytest.raises(ValueError, match="compression_level"):
        ProcessingConfig(compression_level=level)


def test_output_timestep_must_be_multiple_of_input():
    with pytest.raises(ValueError, match="must be a multiple"):
        ProcessingConfig(input_timestep_hours=3, output_timestep_hours=8)


def test_non_positive_timestep_raises():
    with pytest.raises(ValueError, match="Timesteps must be positive"):
        ProcessingConfig(input_timestep_hours=0)


def test_unknown_vpd_method_raises():
    with pytest.raises(ValueError, match="Unknown VPD method"):
        ProcessingConfig(vpd_method="guess")


def test_unknown_vpd_method_in_processor_raises():
    dataset = DatasetSpec(
        name="silo",
        input_directory="/in",
        processors=[ProcessorSpec(kind="vpd", variable="vpd", method="guess")],
    )
    with pytest.raises(ValueError, match="guess"):
        ProcessingConfig(datasets=[dataset])


def test_duplicate_dataset_names_raise():
    datasets = [DatasetSpec(name="silo", input_directory="/a"), DatasetSpec(name="silo", input_directory="/b")]
    with pytest.raises(ValueError, match="Duplicate dataset names"):
        ProcessingConfig(datasets=datasets)


# ---------------------------------------------------------------------------
# ProcessorSpec / DatasetSpec
# ---------------------------------------------------------------------------


def test_processor_spec_unknown_kind_raises():
    with pytest.raises(ValueError, match="Unknown processor kind 'median'"):
        ProcessorSpec(kind="median", variable="tas")


def test_processor_spec_mean_requires_two_inputs():
    with pytest.raises(ValueError, match="at least two inputs"):
        ProcessorSpec(kind="mean", variable="tas", inputs=["tasmin"])


def test_processor_spec_vpd_must_target_vpd():
    with pytest.raises(ValueError, match="VPD processor must target variable 'vpd', got 'tas'"):
        ProcessorSpec(kind="vpd", variable="tas")


def test_dataset_spec_coerces_processor_dicts():
    spec = DatasetSpec(
        name="silo",
        input_directory="/in/silo",
        processors=[{"kind": "standard", "variable": "pr"}],
    )
    assert spec.input_directory == Path("/in/silo")
    assert spec.processors == [ProcessorSpec(kind="standard", variable="pr")]


def test_get_dataset():
    silo = DatasetSpec(name="silo", input_directory="/a")
    cfg = ProcessingConfig(datasets=[silo, DatasetSpec(name="era5", input_directory="/b")])
    assert cfg.get_dataset("silo") is silo


def test_get_dataset_unknown_raises():
    with pytest.raises(KeyError, match="Unknown dataset"):
        ProcessingConfig().get_dataset("nope")


# ---------------------------------------------------------------------------
# from_yaml
# ---------------------------------------------------------------------------


def test_from_yaml_overrides_settings(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text(
        "output_directory: /scratch/ab12/out\n"
        "project: ab12\n"
        "ncpus: 4\n"
        "grid_file: /g/data/ab12/grid.txt\n"
    )
    cfg = ProcessingConfig.from_yaml(yaml_file)
    assert cfg.output_directory == Path("/scratch/ab12/out")
    assert cfg.project == "ab12"
    assert cfg.ncpus == 4
    assert cfg.grid_file == Path("/g/data/ab12/grid.txt")
    assert cfg.queue == "normal"  # unchanged default


def test_from_yaml_empty_file_uses_defaults(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text("")
    cfg = ProcessingConfig.from_yaml(yaml_file)
    assert cfg.output_directory == Path("climproc_output")


def test_from_yaml_datasets(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text(
        "datasets:\n"
        "  - name: silo\n"
        "    input_directory: /g/data/ab12/silo\n"
        "    variables:\n"
        "      tas: {name: t_avg, units: degC}\n"
        "    processors:\n"
        "      - {kind: standard, variable: tas}\n"
        "      - {kind: vpd, variable: vpd, rechunk: true, method: buck1981}\n"
    )
    cfg = ProcessingConfig.from_yaml(yaml_file)
    (silo,) = cfg.datasets
    assert isinstance(silo, DatasetSpec)
    assert silo.input_directory == Path("/g/data/ab12/silo")
    assert silo.variables == {"tas": {"name": "t_avg", "units": "degC"}}
    assert [p.kind for p in silo.processors] == ["standard", "vpd"]
    assert silo.processors[1].rechunk is True
    assert silo.processors[1].method == "buck1981"


def test_from_yaml_invalid_processor_kind_raises(tmp_path):
    yaml_file = tmp_path / "config.yaml"
    yaml_file.write_text(
        "datasets:\n"
        "  - name: silo\n"
        "    input_directory: /in\n"
        "    processors:\n"
        "      - {kind: bogus, variable: tas}\n"
    )
    with pytest.raises(ValueError, match="Unknown processor kind"):
        ProcessingConfig.from_yaml(yaml_file)


def test_from_yaml_malformed_raises_value_error(tmp_path):
    yaml_file = tmp_path / "bad.yaml"
    yaml_file.write_text("key: [unclosed bracket\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
        ProcessingConfig.from_yaml(yaml_file)


def test_from_yaml_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ProcessingConfig.from_yaml(tmp_path / "missing.yaml")
