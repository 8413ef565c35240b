"""
Geometry primitives for the simulation: 3D vectors and building boxes.
"""

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Vector:
    """3D vector with coordinates in meters (or m/s for velocities)."""
    x: float
    y: float
    z: float = 0.0

    @classmethod
    def from_sequence(cls, values: Sequence[float], default_z: float = 0.0) -> 'Vector':
        """Build a vector from a 2- or 3-element sequence."""
        if len(values) == 2:
            return cls(float(values[0]), float(values[1]), float(default_z))
        if len(values) == 3:
            return cls(float(values[0]), float(values[1]), float(values[2]))
        raise ValueError(f"Expected 2 or 3 coordinates, got {len(values)}")

    def distance_to(self, other: 'Vector') -> float:
        """Calculate 3D distance to another position."""
        return math.sqrt((self.x - other.x)**2 + (self.y - other.y)**2 + (self.z - other.z)**2)

    def distance_2d_to(self, other: 'Vector') -> float:
        """Calculate horizontal distance to another position."""
        return math.sqrt((self.x - other.x)**2 + (self.y - other.y)**2)

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    def is_zero(self) -> bool:
        return self.x == 0.0 and self.y == 0.0 and self.z == 0.0

    def as_tuple(self):
        return (self.x, self.y, self.z)

    def __add__(self, other: 'Vector') -> 'Vector':
        return Vector(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: 'Vector') -> 'Vector':
        return Vector(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, factor: float) -> 'Vector':
        return Vector(self.x * factor, self.y * factor, self.z * factor)

    __rmul__ = __mul__


ZERO = Vector(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Building:
    """Axis-aligned box obstruction."""
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    z_min: float = 0.0
    z_max: float = 10.0

    def __post_init__(self):
        if self.x_min > self.x_max or self.y_min > self.y_max or self.z_min > self.z_max:
            raise ValueError(f"Building bounds are inverted: {self}")

    def contains(self, point: Vector) -> bool:
        return (self.x_min <= point.x <= self.x_max and
                self.y_min <= point.y <= self.y_max and
                self.z_min <= point.z <= self.z_max)

    def intersects_segment(self, start: Vector, end: Vector) -> bool:
        """
        Check whether the straight segment start -> end crosses the box.

        Uses the slab method: the segment parameter interval [0, 1] is
        clipped against each pair of axis-aligned planes.
        """
        t_enter, t_exit = 0.0, 1.0
        for origin, target, low, high in (
            (start.x, end.x, self.x_min, self.x_max),
            (start.y, end.y, self.y_min, self.y_max),
            (start.z, end.z, self.z_min, self.z_max),
        ):
            direction = target - origin
            if direction == 0.0:
                if origin < low or origin > high:
                    return False
                continue
            t1 = (low - origin) / direction
            t2 = (high - origin) / direction
            if t1 > t2:
                t1, t2 = t2, t1
            t_enter = max(t_enter, t1)
            t_exit = min(t_exit, t2)
            if t_enter > t_exit:
                return False
        return True
