import pytest

from bichsel_mc.config import SimulationConfig, load_config
from bichsel_mc.core.particle import ParticleType
from bichsel_mc.errors import ConfigurationError
from bichsel_mc.physics.pairs import pair_threshold


def test_load_yaml(tmp_path):
    path = tmp_path / 'run.yaml'
    path.write_text(
        "particle_type: proton\n"
        "source_energy: 120000.0\n"
        "fast: false\n"
        "sensor:\n"
        "  thickness: 0.1\n"
    )
    config = load_config(path)
    assert config.particle_type is ParticleType.PROTON
    assert config.source_energy == 120000.0
    assert config.fast is False
    assert config.energy_threshold == pytest.approx(pair_threshold(293.15))

    sensor = config.build_sensor()
    assert sensor.sensor_thickness() == 0.1
    assert sensor.pixel_pitch() == 0.025


def test_example_config_loads():
    from pathlib import Path
    path = Path(__file__).resolve().parents[1] / 'examples' / 'configs' / 'proton_120GeV.yaml'
    config = load_config(path)
    assert config.delta_energy_cut == 0.009
    assert config.build_sensor().sensor_thickness() == 0.285


@pytest.mark.parametrize("params", [
    {'source_energy': 1.0, 'bogus': 1},
    {'source_energy': 0.0},
    {'source_energy': -5.0},
    {'source_energy': 'fast'},
    {'source_energy': 1.0, 'delta_energy_cut': 0.0},
    {'source_energy': 1.0, 'energy_threshold': -1.0},
    {'source_energy': 1.0, 'particle_type': 'graviton'},
    {'source_energy': 1.0, 'particle_type': 'none'},
    {'source_energy': 1.0, 'source_energy_spread': -0.1},
    {'source_energy': 1.0, 'incidence_angle': 90.0},
    {'source_energy': 1.0, 'sensor': {'thickness': 0.0}},
    {'source_energy': 1.0, 'sensor': {'depth': 0.1}},
    {'particle_type': 'proton'},
])
def test_invalid_parameters(params):
    with pytest.raises(ConfigurationError):
        SimulationConfig.from_dict(params)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / 'absent.yaml')


def test_not_a_mapping(tmp_path):
    path = tmp_path / 'list.yaml'
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        SimulationConfig(source_energy=-1.0)
