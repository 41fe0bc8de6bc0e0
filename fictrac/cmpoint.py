"""Three-component vectors and the rotation helpers built on them."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np

_QUAT_TRACE_EPS = 1e-7
_QUAT_SIN_EPS = 0.0005


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x <= lo else hi if x >= hi else x


@dataclass(frozen=True)
class CmPoint:
    """An immutable 3D vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_az_el(cls, az: float, el: float) -> CmPoint:
        """Unit vector at azimuth ``az`` (about +Z) and elevation ``el``."""
        point = cls(
            math.cos(az) * math.cos(el),
            math.sin(az) * math.cos(el),
            math.sin(el),
        )
        return point.normalised()

    @classmethod
    def from_seq(cls, values: Iterable[float]) -> CmPoint:
        """Build a point from any three-element iterable."""
        x, y, z = (float(v) for v in values)
        return cls(x, y, z)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y
        yield self.z

    def __getitem__(self, index: int) -> float:
        return (self.x, self.y, self.z)[index]

    def __add__(self, other: CmPoint) -> CmPoint:
        return CmPoint(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: CmPoint) -> CmPoint:
        return CmPoint(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> CmPoint:
        return CmPoint(-self.x, -self.y, -self.z)

    def __mul__(self, scale: float) -> CmPoint:
        return CmPoint(self.x * scale, self.y * scale, self.z * scale)

    __rmul__ = __mul__

    def __truediv__(self, scale: float) -> CmPoint:
        return self * (1.0 / scale)

    def as_array(self) -> np.ndarray:
        """The point as a float numpy array of shape (3,)."""
        return np.array([self.x, self.y, self.z], dtype=float)

    def dot(self, other: CmPoint) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: CmPoint) -> CmPoint:
        return CmPoint(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.dot(self))

    def normalised(self) -> CmPoint:
        """Unit vector in the same direction; the zero vector stays zero."""
        mag = self.length()
        if mag == 0:
            return self
        return self * (1.0 / mag)

    def angle_to_norm(self, other: CmPoint) -> float:
        """Angle between this and ``other``, both assumed to be unit vectors."""
        return math.acos(_clamp(self.dot(other), -1.0, 1.0))

    def to_matrix(self) -> np.ndarray:
        """Rotation matrix for this vector read as an angle-axis (omega)."""
        return omega_to_matrix(self)

    def to_az_el_mag(self) -> tuple[float, float, float]:
        """Azimuth, elevation and magnitude of this vector."""
        mag = self.length()
        unit = self.normalised()
        flat = CmPoint(unit.x, unit.y, 0.0)
        xy = flat.length()
        flat = flat.normalised()
        az = math.atan2(flat.y, flat.x)
        el = math.atan2(unit.z, xy)
        return az, el, mag

    def transformed(self, m: Sequence[Sequence[float]] | np.ndarray) -> CmPoint:
        """The product ``m @ self`` for a 3x3 matrix ``m``."""
        mat = np.asarray(m, dtype=float)
        if mat.shape != (3, 3):
            raise ValueError(f"invalid matrix dimensions {mat.shape}, expected (3, 3)")
        return CmPoint.from_seq(mat @ self.as_array())

    def rotation_about(self, angle: float) -> np.ndarray:
        """Matrix rotating by ``angle`` about this (not necessarily unit) axis."""
        return self.normalised().rotation_about_norm(angle)

    def rotation_about_norm(self, angle: float) -> np.ndarray:
        """Matrix rotating by ``angle`` about this unit axis."""
        return angle_axis_to_matrix(math.cos(angle), math.sin(angle), self)

    def rotation_to(self, vec: CmPoint) -> CmPoint:
        """Angle-axis rotation taking the direction of this vector to ``vec``."""
        return self.normalised().rotation_to_norm(vec.normalised())

    def rotation_to_norm(self, vec: CmPoint) -> CmPoint:
        """Angle-axis rotation between two unit vectors."""
        axis = self.cross(vec)
        mag = axis.length()
        angle = math.asin(min(mag, 1.0))
        return axis.normalised() * angle

    def orth_vec_norm(self) -> CmPoint:
        """A unit vector orthogonal to this one."""
        x, y, z = self
        if self.x < self.y:
            x += 1
        elif self.y < self.z:
            y += 1
        else:
            z += 1
        return self.cross(CmPoint(x, y, z)).normalised()

    def rotated_about_orth_vec(self, angle: float) -> CmPoint:
        """This vector rotated by ``angle`` about an orthogonal axis."""
        orth = self.orth_vec_norm()
        return self.transformed(orth.rotation_about_norm(angle))


def angle_axis_to_matrix(cos_angle: float, sin_angle: float, axis: CmPoint) -> np.ndarray:
    """Rotation matrix for a unit ``axis`` and the cosine/sine of the angle."""
    x, y, z = axis
    c = cos_angle
    d = 1.0 - c
    dx, dy, dz = d * x, d * y, d * z
    dxy, dxz, dyz = dx * y, dx * z, dy * z
    s = sin_angle
    sx, sy, sz = s * x, s * y, s * z
    return np.array(
        [
            [c + dx * x, dxy - sz, dxz + sy],
            [dxy + sz, c + dy * y, dyz - sx],
            [dxz - sy, dyz + sx, c + dz * z],
        ],
        dtype=float,
    )


def omega_to_matrix(omega: CmPoint | Iterable[float]) -> np.ndarray:
    """Rotation matrix for an angle-axis vector (angle = its length)."""
    v = omega if isinstance(omega, CmPoint) else CmPoint.from_seq(omega)
    angle = v.length()
    return angle_axis_to_matrix(math.cos(angle), math.sin(angle), v.normalised())


def _as_3x3(m: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    mat = np.asarray(m, dtype=float)
    if mat.shape != (3, 3):
        raise ValueError(f"invalid matrix dimensions {mat.shape}, expected (3, 3)")
    return mat


def matrix_to_omega(m: Sequence[Sequence[float]] | np.ndarray) -> CmPoint:
    """Angle-axis vector of a 3x3 rotation matrix."""
    mat = _as_3x3(m)
    angle = math.acos(_clamp((mat[0, 0] + mat[1, 1] + mat[2, 2] - 1) / 2.0, -1.0, 1.0))
    sin_angle = math.sin(angle)
    if sin_angle != 0:
        angle /= 2.0 * sin_angle
    return CmPoint(
        angle * (mat[2, 1] - mat[1, 2]),
        angle * (mat[0, 2] - mat[2, 0]),
        angle * (mat[1, 0] - mat[0, 1]),
    )


def quat_normalise(q: Sequence[float]) -> tuple[float, float, float, float]:
    """Quaternion (x, y, z, w) scaled to unit length; zero stays zero."""
    x, y, z, w = (float(v) for v in q)
    mag = math.sqrt(x * x + y * y + z * z + w * w)
    if mag == 0:
        return x, y, z, w
    s = 1.0 / mag
    return x * s, y * s, z * s, w * s


def matrix_to_quat(m: Sequence[Sequence[float]] | np.ndarray) -> tuple[float, float, float, float]:
    """Unit quaternion (x, y, z, w) of a 3x3 rotation matrix."""
    m0, m1, m2, m3, m4, m5, m6, m7, m8 = _as_3x3(m).ravel()
    t = 1 + m0 + m4 + m8
    if t > _QUAT_TRACE_EPS:
        s = math.sqrt(t) * 2.0
        q = ((m7 - m5) / s, (m2 - m6) / s, (m3 - m1) / s, 0.25 * s)
    elif m0 > m4 and m0 > m8:
        s = math.sqrt(1.0 + m0 - m4 - m8) * 2.0
        q = (0.25 * s, (m3 + m1) / s, (m2 + m6) / s, (m7 - m5) / s)
    elif m4 > m8:
        s = math.sqrt(1.0 + m4 - m0 - m8) * 2.0
        q = ((m3 + m1) / s, 0.25 * s, (m7 + m5) / s, (m2 - m6) / s)
    else:
        s = math.sqrt(1.0 + m8 - m0 - m4) * 2.0
        q = ((m2 + m6) / s, (m7 + m5) / s, 0.25 * s, (m3 - m1) / s)
    return quat_normalise(q)


def quat_to_angle_axis(q: Sequence[float]) -> tuple[float, CmPoint]:
    """Angle and axis of a unit quaternion (x, y, z, w)."""
    x, y, z, w = (float(v) for v in q)
    cos_a = _clamp(w, -1.0, 1.0)
    sin_a = math.sqrt(1.0 - cos_a * cos_a)
    if abs(sin_a) < _QUAT_SIN_EPS:
        sin_a = 1.0
    angle = math.acos(cos_a) * 2.0
    return angle, CmPoint(x / sin_a, y / sin_a, z / sin_a)