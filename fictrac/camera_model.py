"""Camera models converting between image pixels and 3D view vectors."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Iterable, NamedTuple

from fictrac.cmpoint import CmPoint


class PixelResult(NamedTuple):
    """Pixel coordinates and whether they fall inside the valid image area."""

    x: float
    y: float
    valid: bool


class VectorResult(NamedTuple):
    """View vector and whether the pixel it came from was valid."""

    vector: CmPoint
    valid: bool


def _as_point(point: CmPoint | Iterable[float]) -> CmPoint:
    return point if isinstance(point, CmPoint) else CmPoint.from_seq(point)


class CameraModel(ABC):
    """Base class for mapping between pixel coordinates and view vectors."""

    def __init__(self, width: int, height: int) -> None:
        self._width = int(width)
        self._height = int(height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def _valid_xy(self, x: float, y: float) -> bool:
        return 0 <= x < self._width and 0 <= y < self._height

    @abstractmethod
    def pixel_to_vector(self, x: float, y: float) -> VectorResult:
        """View vector through the image point (x, y)."""

    @abstractmethod
    def vector_to_pixel(self, point: CmPoint | Iterable[float]) -> PixelResult:
        """Image point that the direction ``point`` projects onto."""

    def valid_pixel(self, x: float, y: float) -> bool:
        """Whether (x, y) lies within the image area."""
        return self._valid_xy(x, y)

    def pixel_index_to_vector(self, x: int, y: int) -> VectorResult:
        """View vector through the centre of pixel (x, y)."""
        return self.pixel_to_vector(x + 0.5, y + 0.5)

    def vector_to_pixel_index(self, point: CmPoint | Iterable[float]) -> PixelResult:
        """Pixel index (centre-relative coordinates) that ``point`` maps to."""
        x, y, valid = self.vector_to_pixel(point)
        return PixelResult(x - 0.5, y - 0.5, valid)

    @abstractmethod
    def fov(self) -> float:
        """Field of view of the model, in radians."""


class FisheyeCameraModel(CameraModel):
    """Equidistant fisheye model with a circular image area."""

    def __init__(
        self,
        width: int,
        height: int,
        rad_per_pixel: float,
        image_circle_fov: float,
        centre_x: float = -1,
        centre_y: float = -1,
    ) -> None:
        super().__init__(width, height)
        self._rad_per_pixel = rad_per_pixel
        self._image_circle_fov = image_circle_fov
        self._xc = width * 0.5 if centre_x == -1 else centre_x
        self._yc = height * 0.5 if centre_y == -1 else centre_y
        radius = (image_circle_fov * 0.5) / rad_per_pixel
        self._image_circle_r2 = radius * radius

    def _valid_pixel_r2(self, x: float, y: float, r2: float) -> bool:
        return r2 <= self._image_circle_r2 and self._valid_xy(x, y)

    def pixel_to_vector(self, x: float, y: float) -> VectorResult:
        dx = x - self._xc
        dy = y - self._yc
        r2 = dx * dx + dy * dy
        r = math.sqrt(r2)
        alpha = r * self._rad_per_pixel
        sin_alpha = math.sin(alpha)
        xy_scale = sin_alpha / r if r > 1e-7 else sin_alpha
        vec = CmPoint(dx * xy_scale, dy * xy_scale, math.cos(alpha))
        return VectorResult(vec, self._valid_pixel_r2(x, y, r2))

    def vector_to_pixel(self, point: CmPoint | Iterable[float]) -> PixelResult:
        rx, ry, rz = _as_point(point).normalised()
        alpha = math.acos(max(-1.0, min(1.0, rz)))
        r = alpha / self._rad_per_pixel
        sin_alpha2 = rx * rx + ry * ry
        xy_scale = r / math.sqrt(sin_alpha2) if sin_alpha2 > 1e-14 else 0.0
        x = rx * xy_scale + self._xc
        y = ry * xy_scale + self._yc
        return PixelResult(x, y, self._valid_pixel_r2(x, y, r * r))

    def valid_pixel(self, x: float, y: float) -> bool:
        dx = x - self._xc
        dy = y - self._yc
        return self._valid_pixel_r2(x, y, dx * dx + dy * dy)

    def fov(self) -> float:
        return self._image_circle_fov


class EquiAreaCameraModel(CameraModel):
    """Equal-area (Gall-Peters style) cylindrical projection."""

    def __init__(
        self,
        width: int,
        height: int,
        lat_top: float,
        lat_extent: float,
        lon_left: float,
        lon_extent: float,
    ) -> None:
        super().__init__(width, height)
        self._lat_top = lat_top
        self._lat_extent = lat_extent
        self._lon_left = lon_left
        self._lon_extent = lon_extent
        self._lat_per_pixel = lat_extent / height
        self._lat_pixels_per_wrap = abs(math.pi / self._lat_per_pixel)
        self._lon_per_pixel = lon_extent / width
        self._lon_pixels_per_wrap = abs(2.0 * math.pi / self._lon_per_pixel)

    def pixel_to_vector(self, x: float, y: float) -> VectorResult:
        lat = y * self._lat_per_pixel + self._lat_top
        lon = x * self._lon_per_pixel + self._lon_left
        dy = -lat / (math.pi / 2)
        lon_mag = math.sqrt(max(0.0, 1.0 - dy * dy))
        vec = CmPoint(lon_mag * math.sin(lon), dy, lon_mag * math.cos(lon))
        return VectorResult(vec, self._valid_xy(x, y))

    def vector_to_pixel(self, point: CmPoint | Iterable[float]) -> PixelResult:
        rx, ry, rz = _as_point(point).normalised()
        lat = -ry * (math.pi / 2)
        lon = math.atan2(rx, rz)
        plat = (lat - self._lat_top) / self._lat_per_pixel
        plon = (lon - self._lon_left) / self._lon_per_pixel

        plon = math.fmod(plon, self._lon_pixels_per_wrap)
        x = plon if plon >= 0 else plon + self._lon_pixels_per_wrap
        plat = math.fmod(plat, self._lat_pixels_per_wrap)
        y = plat if plat >= 0 else plat + self._lat_pixels_per_wrap
        return PixelResult(x, y, self._valid_xy(x, y))

    def fov(self) -> float:
        """The latitude extent of the projection."""
        return self._lat_extent


def create_fisheye(
    width: int,
    height: int,
    rad_per_pixel: float,
    image_circle_fov: float,
    centre_x: float = -1,
    centre_y: float = -1,
) -> FisheyeCameraModel:
    """Build a fisheye model; a centre of -1 means the image centre."""
    return FisheyeCameraModel(width, height, rad_per_pixel, image_circle_fov, centre_x, centre_y)


def create_equi_area(
    width: int,
    height: int,
    lat_top: float,
    lat_extent: float,
    lon_left: float,
    lon_extent: float,
) -> EquiAreaCameraModel:
    """Build an equal-area model."""
    return EquiAreaCameraModel(width, height, lat_top, lat_extent, lon_left, lon_extent)