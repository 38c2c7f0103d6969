"""
Rotation and pose values for the placement grid.

Pieces are only ever turned in 90° steps about the three principal axes,
but the runtime orientation is stored as a general unit quaternion so that
composition of many quarter-turns never accumulates a lossy integer state.
Consumers that need grid cells round the rotated vectors (see
``shape_transform``).

Conventions:
    * +Y is world up, the floor is the y = 0 layer.
    * ``a * b`` applies ``b`` first, then ``a``.
    * ``yaw`` / ``pitch`` / ``roll`` turn about world Y / X / Z and
      pre-multiply onto the current rotation.

Usage:
    rot = Rotation.identity()
    rot = yaw(rot, 90)               # quarter-turn about world Y
    rot.apply((1, 0, 0))             # -> array([0., 0., -1.])
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

import numpy as np


Vector = Tuple[float, float, float]

_AXES = {
    "x": (1.0, 0.0, 0.0),
    "y": (0.0, 1.0, 0.0),
    "z": (0.0, 0.0, 1.0),
}

WORLD_UP: Vector = (0.0, 1.0, 0.0)


# ─────────────────────────────────────────────────────────────────────────────
# Rotation
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Rotation:
    """
    Unit quaternion (w, x, y, z).

    Frozen so a rotation can be shared between a candidate, a committed
    placement and the layout file without copying.
    """
    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    # ── Constructors ─────────────────────────────────────────────────────

    @classmethod
    def identity(cls) -> "Rotation":
        return cls(1.0, 0.0, 0.0, 0.0)

    @classmethod
    def about_axis(cls, axis, degrees: float) -> "Rotation":
        """
        Rotation of *degrees* about *axis*.

        *axis* is either one of ``"x"``, ``"y"``, ``"z"`` or a 3-vector.
        """
        if isinstance(axis, str):
            try:
                vec = np.array(_AXES[axis.lower()])
            except KeyError:
                raise ValueError(f"Unknown axis {axis!r} (expected x, y or z)")
        else:
            vec = np.asarray(axis, dtype=np.float64)
        norm = float(np.linalg.norm(vec))
        if norm == 0.0:
            raise ValueError("Rotation axis must be non-zero")
        vec = vec / norm
        half = math.radians(degrees) / 2.0
        s = math.sin(half)
        return cls(math.cos(half), vec[0] * s, vec[1] * s, vec[2] * s)

    @classmethod
    def from_euler(cls, x: float = 0.0, y: float = 0.0, z: float = 0.0) -> "Rotation":
        """Euler angles in degrees, applied Z first, then X, then Y."""
        return (
            cls.about_axis("y", y)
            * cls.about_axis("x", x)
            * cls.about_axis("z", z)
        )

    @classmethod
    def from_list(cls, values: Sequence[float]) -> "Rotation":
        if len(values) != 4:
            raise ValueError(f"Rotation needs 4 components, got {len(values)}")
        return cls(*(float(v) for v in values)).normalized()

    # ── Algebra ──────────────────────────────────────────────────────────

    def __mul__(self, other: "Rotation") -> "Rotation":
        if not isinstance(other, Rotation):
            return NotImplemented
        w1, x1, y1, z1 = self.w, self.x, self.y, self.z
        w2, x2, y2, z2 = other.w, other.x, other.y, other.z
        return Rotation(
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        )

    def inverse(self) -> "Rotation":
        n = self.w ** 2 + self.x ** 2 + self.y ** 2 + self.z ** 2
        return Rotation(self.w / n, -self.x / n, -self.y / n, -self.z / n)

    def normalized(self) -> "Rotation":
        n = math.sqrt(self.w ** 2 + self.x ** 2 + self.y ** 2 + self.z ** 2)
        if n == 0.0:
            raise ValueError("Cannot normalize a zero quaternion")
        return Rotation(self.w / n, self.x / n, self.y / n, self.z / n)

    # ── Application ──────────────────────────────────────────────────────

    def as_matrix(self) -> np.ndarray:
        """3×3 rotation matrix (column vectors are the rotated basis axes)."""
        w, x, y, z = self.w, self.x, self.y, self.z
        return np.array([
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ], dtype=np.float64)

    def apply(self, vector: Iterable[float]) -> np.ndarray:
        return self.as_matrix() @ np.asarray(list(vector), dtype=np.float64)

    def up(self) -> np.ndarray:
        """Where the local +Y axis points after this rotation."""
        return self.apply(WORLD_UP)

    def is_close(self, other: "Rotation", tol: float = 1e-6) -> bool:
        """Same orientation (q and -q describe the same rotation)."""
        dot = (self.w * other.w + self.x * other.x
               + self.y * other.y + self.z * other.z)
        return abs(abs(dot) - 1.0) <= tol

    def to_list(self) -> List[float]:
        return [self.w, self.x, self.y, self.z]


# ─────────────────────────────────────────────────────────────────────────────
# Quarter-turn stepping (controller keys)
# ─────────────────────────────────────────────────────────────────────────────

def yaw(rotation: Rotation, degrees: float = 90.0) -> Rotation:
    return Rotation.about_axis("y", degrees) * rotation


def pitch(rotation: Rotation, degrees: float = 90.0) -> Rotation:
    return Rotation.about_axis("x", degrees) * rotation


def roll(rotation: Rotation, degrees: float = 90.0) -> Rotation:
    return Rotation.about_axis("z", degrees) * rotation


def quarter_turns() -> List[Rotation]:
    """
    The 24 distinct axis-aligned orientations of a cube.

    Built by choosing where local +Y points (6 faces) and then spinning
    about that axis in four 90° steps.  Identity comes first.
    """
    face_ups = [
        Rotation.identity(),
        Rotation.about_axis("x", 90),
        Rotation.about_axis("x", 180),
        Rotation.about_axis("x", -90),
        Rotation.about_axis("z", 90),
        Rotation.about_axis("z", -90),
    ]
    result: List[Rotation] = []
    for face in face_ups:
        for i in range(4):
            candidate = face * Rotation.about_axis("y", 90 * i)
            if not any(candidate.is_close(r) for r in result):
                result.append(candidate)
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Pose (grid origin in continuous space)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Pose:
    """
    Rigid transform of the grid origin: rotate, then translate.

    Replaces a live scene-graph transform; the grid only ever sees this
    value.
    """
    rotation: Rotation = field(default_factory=Rotation.identity)
    translation: Vector = (0.0, 0.0, 0.0)

    def transform_point(self, local: Iterable[float]) -> np.ndarray:
        return self.rotation.apply(local) + np.asarray(self.translation, dtype=np.float64)

    def inverse_transform_point(self, world: Iterable[float]) -> np.ndarray:
        offset = np.asarray(list(world), dtype=np.float64) - np.asarray(
            self.translation, dtype=np.float64,
        )
        return self.rotation.inverse().apply(offset)

    def to_dict(self) -> dict:
        return {"rotation": self.rotation.to_list(),
                "translation": list(self.translation)}

    @classmethod
    def from_dict(cls, d: dict) -> "Pose":
        return cls(
            rotation=Rotation.from_list(d.get("rotation", [1.0, 0.0, 0.0, 0.0])),
            translation=tuple(float(v) for v in d.get("translation", (0.0, 0.0, 0.0))),
        )
