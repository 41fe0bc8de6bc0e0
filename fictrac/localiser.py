"""Find the rotation that best aligns the current sphere ROI with the sphere map."""

from __future__ import annotations

import math
import sys
from typing import Iterable, NamedTuple

import numpy as np
from scipy.optimize import minimize

from fictrac.camera_model import CameraModel
from fictrac.cmpoint import CmPoint, omega_to_matrix

_UNKNOWN = 128
_MIN_GOOD_FRACTION = 0.25


class SearchResult(NamedTuple):
    """Best rotation found (angle-axis) and its mean squared error."""

    omega: CmPoint
    err: float


class Localiser:
    """Scores candidate rotations of the ROI against a map of the sphere surface."""

    def __init__(
        self,
        bound: float,
        tol: float,
        max_evals: int,
        sphere_model: CameraModel,
        sphere_map: np.ndarray,
        roi_mask: np.ndarray,
        p1s_lut: np.ndarray,
    ) -> None:
        self.bound = float(bound)
        self.tol = float(tol)
        self.max_evals = int(max_evals)
        self._sphere_model = sphere_model
        self._sphere_map = np.asarray(sphere_map, dtype=np.uint8)
        if self._sphere_map.ndim != 2:
            raise ValueError("sphere map must be a single-channel image")

        mask = np.asarray(roi_mask)
        if mask.ndim != 2:
            raise ValueError("ROI mask must be a single-channel image")
        self._roi_h, self._roi_w = mask.shape

        lut = np.asarray(p1s_lut, dtype=float)
        if lut.size != self._roi_h * self._roi_w * 3:
            raise ValueError(
                f"view vector table has {lut.size} values, expected {self._roi_h * self._roi_w * 3}"
            )
        lut = lut.reshape(self._roi_h, self._roi_w, 3)
        self._rows, self._cols = np.nonzero(mask >= 255)
        self._vectors = lut[self._rows, self._cols]

        self._roi_frame = np.zeros((self._roi_h, self._roi_w), dtype=np.uint8)
        self._r_roi = np.eye(3)

    @property
    def roi_frame(self) -> np.ndarray:
        return self._roi_frame

    @roi_frame.setter
    def roi_frame(self, frame: np.ndarray) -> None:
        arr = np.asarray(frame)
        if arr.shape[:2] != (self._roi_h, self._roi_w):
            raise ValueError(f"ROI frame shape {arr.shape} does not match mask")
        self._roi_frame = arr

    @property
    def r_roi(self) -> np.ndarray:
        return self._r_roi

    @r_roi.setter
    def r_roi(self, m: np.ndarray) -> None:
        arr = np.asarray(m, dtype=float)
        if arr.size != 9:
            raise ValueError("orientation matrix must have 9 elements")
        self._r_roi = arr.reshape(3, 3)

    def test_rotation(self, x: Iterable[float]) -> float:
        """Mean squared difference between the ROI and the map under rotation ``x``."""
        m = omega_to_matrix(CmPoint.from_seq(x)) @ self._r_roi
        rotated = self._vectors @ m
        roi_vals = self._roi_frame[self._rows, self._cols].astype(int)
        map_h, map_w = self._sphere_map.shape

        err = 0.0
        good = 0
        for vec, r in zip(rotated, roi_vals):
            px, py, _ = self._sphere_model.vector_to_pixel_index(vec)
            ix = min(max(math.floor(px + 0.5), 0), map_w - 1)
            iy = min(max(math.floor(py + 0.5), 0), map_h - 1)
            s = int(self._sphere_map[iy, ix])
            if s == _UNKNOWN:
                continue
            err += (int(r) - s) ** 2
            good += 1

        cnt = len(roi_vals)
        if cnt > 0 and good > _MIN_GOOD_FRACTION * cnt:
            return err / good
        return sys.float_info.max

    def search(
        self, roi_frame: np.ndarray, r_roi: np.ndarray, vx: CmPoint | Iterable[float]
    ) -> SearchResult:
        """Minimise the error within ``bound`` of the guess ``vx``."""
        self.roi_frame = roi_frame
        self.r_roi = r_roi
        x0 = np.array([float(v) for v in vx])
        lower = x0 - self.bound
        upper = x0 + self.bound
        simplex = np.vstack([x0, x0 + np.eye(3) * (0.5 * self.bound)])
        options = {
            "xatol": self.tol,
            "fatol": np.inf,
            "initial_simplex": simplex,
        }
        if self.max_evals > 0:
            options["maxfev"] = self.max_evals
        res = minimize(
            self.test_rotation,
            x0,
            method="Nelder-Mead",
            bounds=list(zip(lower, upper)),
            options=options,
        )
        x = np.clip(res.x, lower, upper)
        return SearchResult(CmPoint.from_seq(x), float(self.test_rotation(x)))