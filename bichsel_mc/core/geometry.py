"""
Sensor geometry seen by the stepping engine.

The engine only needs a boundary test, a local-to-global transform and
the sensor thickness and pixel pitch used to place the primary track.
``BoxSensor`` is a rectangular sensor centred on its local origin.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np


class SensorGeometry(ABC):
    """Interface between the stepping engine and the detector geometry."""

    @abstractmethod
    def is_within_sensor(self, position: np.ndarray) -> bool:
        """Whether a local position [mm] lies inside the sensitive volume."""

    @abstractmethod
    def local_to_global(self, position: np.ndarray) -> np.ndarray:
        """Transform a local position [mm] to global coordinates [mm]."""

    @abstractmethod
    def sensor_thickness(self) -> float:
        """Sensor thickness along local z [mm]."""

    @abstractmethod
    def pixel_pitch(self) -> float:
        """Pixel pitch along local x [mm]."""


class BoxSensor(SensorGeometry):
    """
    Rectangular sensor, local z from -thickness/2 to +thickness/2.

    Example:
        sensor = BoxSensor(thickness=0.285, pitch=0.025)
    """

    def __init__(self, thickness: float = 0.285, pitch: float = 0.025,
                 size: Optional[Tuple[float, float]] = None,
                 offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)):
        """
        Parameters:
            thickness: Sensor thickness [mm]
            pitch: Pixel pitch [mm]
            size: (x, y) sensor extent [mm], default 10 x 10 mm
            offset: Global position of the local origin [mm]
        """
        if thickness <= 0:
            raise ValueError(f"Sensor thickness must be positive, got {thickness}")
        if pitch <= 0:
            raise ValueError(f"Pixel pitch must be positive, got {pitch}")
        if size is None:
            size = (10.0, 10.0)

        self.thickness = float(thickness)
        self.pitch = float(pitch)
        self.half_size = np.array([0.5 * size[0], 0.5 * size[1], 0.5 * thickness])
        self.offset = np.array(offset, dtype=np.float64)

    def is_within_sensor(self, position: np.ndarray) -> bool:
        return bool(np.all(np.abs(position) <= self.half_size))

    def local_to_global(self, position: np.ndarray) -> np.ndarray:
        return np.asarray(position, dtype=np.float64) + self.offset

    def sensor_thickness(self) -> float:
        return self.thickness

    def pixel_pitch(self) -> float:
        return self.pitch

    def __repr__(self) -> str:
        return (f"BoxSensor(thickness={self.thickness} mm, pitch={self.pitch} mm, "
                f"size={(2 * self.half_size[:2]).tolist()} mm)")
