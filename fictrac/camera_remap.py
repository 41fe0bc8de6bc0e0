"""Remap images from one camera model to another."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np

from fictrac.camera_model import CameraModel
from fictrac.cmpoint import CmPoint

INVALID_MAP_VAL = -1.0

RemapTransform = Callable[[CmPoint], CmPoint]


class CameraRemap:
    """Lookup tables mapping each destination pixel to a source position.

    ``trans`` is an optional callable applying the inverse transform to a
    destination view vector before it is projected into the source model.
    """

    def __init__(
        self,
        src: CameraModel,
        dst: CameraModel,
        trans: Optional[RemapTransform] = None,
    ) -> None:
        self._src = src
        self._dst = dst
        self._trans = trans
        self._map_x = np.full((dst.height, dst.width), INVALID_MAP_VAL)
        self._map_y = np.full((dst.height, dst.width), INVALID_MAP_VAL)
        self.set_transform(trans)

    @property
    def src_w(self) -> int:
        return self._src.width

    @property
    def src_h(self) -> int:
        return self._src.height

    @property
    def dst_w(self) -> int:
        return self._dst.width

    @property
    def dst_h(self) -> int:
        return self._dst.height

    @property
    def map_x(self) -> np.ndarray:
        return self._map_x.copy()

    @property
    def map_y(self) -> np.ndarray:
        return self._map_y.copy()

    def set_transform(self, trans: Optional[RemapTransform]) -> None:
        """Recompute the mapping with a different transformation."""
        self._trans = trans
        max_x = self.src_w - 1
        max_y = self.src_h - 1
        for y in range(self.dst_h):
            for x in range(self.dst_w):
                vec, ok = self._dst.pixel_index_to_vector(x, y)
                if ok:
                    if trans is not None:
                        vec = trans(vec)
                    sx, sy, ok = self._src.vector_to_pixel_index(vec)
                if ok:
                    self._map_x[y, x] = min(max(sx, 0.0), max_x)
                    self._map_y[y, x] = min(max(sy, 0.0), max_y)
                else:
                    self._map_x[y, x] = INVALID_MAP_VAL
                    self._map_y[y, x] = INVALID_MAP_VAL

    def apply(self, src_img: np.ndarray) -> np.ndarray:
        """Bilinearly resample ``src_img``; unmapped pixels are zero."""
        src = np.asarray(src_img)
        if src.shape[:2] != (self.src_h, self.src_w):
            raise ValueError(
                f"source image shape {src.shape[:2]} does not match "
                f"({self.src_h}, {self.src_w})"
            )
        valid = (self._map_x != INVALID_MAP_VAL) & (self._map_y != INVALID_MAP_VAL)
        mx = np.where(valid, self._map_x, 0.0)
        my = np.where(valid, self._map_y, 0.0)

        x0 = np.floor(mx).astype(int)
        y0 = np.floor(my).astype(int)
        x1 = np.minimum(x0 + 1, self.src_w - 1)
        y1 = np.minimum(y0 + 1, self.src_h - 1)
        fx = mx - x0
        fy = my - y0
        if src.ndim == 3:
            fx = fx[..., None]
            fy = fy[..., None]

        data = src.astype(float)
        top = data[y0, x0] * (1 - fx) + data[y0, x1] * fx
        bottom = data[y1, x0] * (1 - fx) + data[y1, x1] * fx
        out = top * (1 - fy) + bottom * fy
        out[~valid] = 0

        if np.issubdtype(src.dtype, np.integer):
            info = np.iinfo(src.dtype)
            out = np.clip(np.rint(out), info.min, info.max)
        return out.astype(src.dtype)