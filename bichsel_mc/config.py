"""
Simulation configuration.

Parameters are read from a YAML file (or a plain dict) and validated
before any table is loaded or event is run.

Example config.yaml:
    particle_type: proton
    source_energy: 120000.0     # MeV
    delta_energy_cut: 0.009     # MeV
    fast: true
    sensor:
      thickness: 0.285          # mm
      pitch: 0.025              # mm
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from bichsel_mc.core.geometry import BoxSensor
from bichsel_mc.core.particle import ParticleType, parse_particle_type
from bichsel_mc.errors import ConfigurationError
from bichsel_mc.physics.pairs import pair_threshold

logger = logging.getLogger(__name__)

DEFAULTS = {
    'particle_type': 'electron',
    'source_energy_spread': 0.0,
    'temperature': 293.15,
    'energy_threshold': None,
    'delta_energy_cut': 0.009,
    'fast': True,
    'incidence_angle': None,
    'data_paths': [],
    'seed': 0,
    'output_plots': False,
    'sensor': {},
}

SENSOR_DEFAULTS = {
    'thickness': 0.285,
    'pitch': 0.025,
    'size': [10.0, 10.0],
    'offset': [0.0, 0.0, 0.0],
}


class SimulationConfig:
    """
    Validated simulation parameters.

    Attributes:
        particle_type: Species of the primary particle
        source_energy: Kinetic energy of the primary [MeV]
        source_energy_spread: Gaussian energy spread [MeV]
        temperature: Sensor temperature [K]
        energy_threshold: Pair-creation threshold [eV]
        delta_energy_cut: Minimum energy of tracked delta rays [MeV]
        fast: Poisson pair counting instead of the explicit random walk
        incidence_angle: Track angle to the sensor normal [deg], None for
            atan(pitch / thickness)
        data_paths: Extra search paths for the cross-section tables
        seed: Master seed of the run
        output_plots: Record step lengths, angles and cluster distributions for plots
        sensor: Sensor geometry parameters
    """

    def __init__(self, source_energy: float, **kwargs):
        unknown = set(kwargs) - set(DEFAULTS)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        params = dict(DEFAULTS)
        params.update(kwargs)

        self.particle_type: ParticleType = parse_particle_type(params['particle_type'])
        self.source_energy = self._positive('source_energy', source_energy)
        self.source_energy_spread = float(params['source_energy_spread'])
        if self.source_energy_spread < 0:
            raise ConfigurationError("source_energy_spread must not be negative")

        self.temperature = self._positive('temperature', params['temperature'])
        threshold = params['energy_threshold']
        if threshold is None:
            threshold = pair_threshold(self.temperature)
        self.energy_threshold = self._positive('energy_threshold', threshold)
        self.delta_energy_cut = self._positive('delta_energy_cut', params['delta_energy_cut'])
        self.fast = bool(params['fast'])

        angle = params['incidence_angle']
        if angle is not None:
            angle = float(angle)
            if abs(angle) >= 90.0:
                raise ConfigurationError(f"incidence_angle must be within (-90, 90) deg, got {angle}")
        self.incidence_angle: Optional[float] = angle

        self.data_paths: List[Path] = [Path(p) for p in params['data_paths']]
        self.seed = int(params['seed'])
        self.output_plots = bool(params['output_plots'])

        sensor = dict(SENSOR_DEFAULTS)
        sensor.update(params['sensor'] or {})
        unknown = set(sensor) - set(SENSOR_DEFAULTS)
        if unknown:
            raise ConfigurationError(f"Unknown sensor keys: {sorted(unknown)}")
        self._positive('sensor.thickness', sensor['thickness'])
        self._positive('sensor.pitch', sensor['pitch'])
        self.sensor = sensor

    @staticmethod
    def _positive(name: str, value: Any) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
        if not value > 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")
        return value

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "SimulationConfig":
        params = dict(params)
        if 'source_energy' not in params:
            raise ConfigurationError("Missing required key 'source_energy'")
        return cls(**params)

    def build_sensor(self) -> BoxSensor:
        """Sensor geometry described by the ``sensor`` block."""
        return BoxSensor(thickness=float(self.sensor['thickness']),
                         pitch=float(self.sensor['pitch']),
                         size=tuple(self.sensor['size']),
                         offset=tuple(self.sensor['offset']))

    def __repr__(self) -> str:
        return (f"SimulationConfig({self.particle_type.name}, E={self.source_energy} MeV, "
                f"cut={self.delta_energy_cut} MeV, threshold={self.energy_threshold:.4g} eV, "
                f"fast={self.fast})")


def load_config(path: Union[str, Path]) -> SimulationConfig:
    """
    Load a YAML configuration file.

    Raises:
        ConfigurationError: File missing, not a mapping, or invalid values
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            params = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(params, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping")

    config = SimulationConfig.from_dict(params)
    logger.info("Loaded configuration %s: %s", path.name, config)
    return config
