"""Grab frames from a source, threshold the remapped sphere ROI and queue them."""

from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import numpy as np
from scipy import ndimage

log = logging.getLogger(__name__)

_MASK_ON = 255
_UNKNOWN = 128


class ThreshTransform(Enum):
    """Which channel (or mix) of a BGR frame is thresholded."""

    GREY = "grey"
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


_TRANSFORM_NAMES = {
    "red": ThreshTransform.RED,
    "r": ThreshTransform.RED,
    "green": ThreshTransform.GREEN,
    "g": ThreshTransform.GREEN,
    "blue": ThreshTransform.BLUE,
    "b": ThreshTransform.BLUE,
}

_CHANNELS = {
    ThreshTransform.BLUE: 0,
    ThreshTransform.GREEN: 1,
    ThreshTransform.RED: 2,
}


class FrameSource(Protocol):
    """What the grabber needs from a frame source."""

    timestamp: float
    ms_since_midnight: float

    def grab(self) -> Optional[np.ndarray]: ...

    def rewind(self) -> bool: ...


class Remapper(Protocol):
    """What the grabber needs from an image remapper."""

    src_w: int
    src_h: int
    dst_w: int
    dst_h: int

    def apply(self, src_img: np.ndarray) -> np.ndarray: ...


@dataclass(frozen=True)
class FrameSet:
    """A captured frame, its thresholded ROI remap and its timestamps."""

    frame: np.ndarray
    remap: np.ndarray
    timestamp: float
    ms_since_midnight: float


def parse_thresh_transform(name: str) -> ThreshTransform:
    """Transform named by ``name``; anything unrecognised means grey."""
    return _TRANSFORM_NAMES.get(name, ThreshTransform.GREY)


def to_grey(frame_bgr: np.ndarray, transform: ThreshTransform = ThreshTransform.GREY) -> np.ndarray:
    """Single-channel 8-bit image taken from a BGR frame."""
    frame = np.asarray(frame_bgr)
    if frame.ndim == 2:
        return frame.astype(np.uint8, copy=True)
    channel = _CHANNELS.get(transform)
    if channel is not None:
        return np.ascontiguousarray(frame[..., channel]).astype(np.uint8)
    data = frame.astype(float)
    grey = 0.114 * data[..., 0] + 0.587 * data[..., 1] + 0.299 * data[..., 2]
    return np.clip(np.floor(grey + 0.5), 0, 255).astype(np.uint8)


def median_blur3(img: np.ndarray) -> np.ndarray:
    """3x3 median filter with replicated borders."""
    return ndimage.median_filter(np.asarray(img), size=3, mode="nearest")


def threshold_remap(
    remap_grey: np.ndarray,
    remap_blur: np.ndarray,
    remap_mask: np.ndarray,
    thresh_win: int,
    thresh_ratio: float,
) -> np.ndarray:
    """Adaptive binary threshold of the ROI image.

    The local min/max is taken from ``remap_blur`` over a square window of
    side ``thresh_win`` among masked-in pixels (overexposed pixels are left
    out of the max). Masked-out pixels become 128, dark pixels 0, bright 255.
    """
    if thresh_win < 1 or thresh_win % 2 == 0:
        raise ValueError(f"threshold window must be a positive odd number ({thresh_win})")
    grey = np.asarray(remap_grey)
    blur = np.asarray(remap_blur).astype(np.int16)
    valid = np.asarray(remap_mask) == _MASK_ON
    if not (grey.shape == blur.shape == valid.shape):
        raise ValueError("image, blurred image and mask must have the same shape")

    max_src = np.where(valid & (blur < 255), blur, 0)
    min_src = np.where(valid, blur, 255)
    thr_max = ndimage.maximum_filter(max_src, size=thresh_win, mode="constant", cval=0)
    thr_min = ndimage.minimum_filter(min_src, size=thresh_win, mode="constant", cval=255)

    g = grey.astype(float)
    dark = thresh_ratio * (g - thr_min) <= (thr_max - g)
    out = np.where(dark, 0, 255).astype(np.uint8)
    out[~valid] = _UNKNOWN
    return out


class FrameGrabber:
    """Background thread producing thresholded frame sets from a source."""

    def __init__(
        self,
        source: FrameSource,
        remapper: Remapper,
        remap_mask: np.ndarray,
        thresh_ratio: float = 1.0,
        thresh_win_pc: float = 0.2,
        thresh_rgb_transform: str = "grey",
        max_buf_len: int = 0,
        max_frame_cnt: int = 0,
    ) -> None:
        self._source = source
        self._remapper = remapper
        self._rw = remapper.dst_w
        self._rh = remapper.dst_h
        mask = np.asarray(remap_mask, dtype=np.uint8)
        if mask.shape != (self._rh, self._rw):
            raise ValueError(
                f"remap mask shape {mask.shape} does not match ROI ({self._rh}, {self._rw})"
            )
        self._remap_mask = mask

        if thresh_ratio <= 0:
            log.warning("Invalid thresh_ratio parameter (%f)! Defaulting to 1.0", thresh_ratio)
            thresh_ratio = 1.0
        self._thresh_ratio = float(thresh_ratio)
        self._transform = parse_thresh_transform(thresh_rgb_transform)

        if thresh_win_pc < 0 or thresh_win_pc > 1.0:
            log.warning("Invalid thresh_win parameter (%f)! Defaulting to 0.2", thresh_win_pc)
            thresh_win_pc = 0.2
        self._thresh_win = int(math.floor(thresh_win_pc * self._rw + 0.5)) | 0x01
        log.debug("Thresholding window size: %d (ROI: %d x %d)", self._thresh_win, self._rw, self._rh)

        self._max_buf_len = int(max_buf_len)
        self._max_frame_cnt = int(max_frame_cnt)

        self._cond = threading.Condition()
        self._queue: deque[FrameSet] = deque()
        self._active = True
        self._thread = threading.Thread(target=self._process, name="frame-grabber", daemon=True)
        self._thread.start()

    @property
    def thresh_ratio(self) -> float:
        return self._thresh_ratio

    @property
    def thresh_win(self) -> int:
        return self._thresh_win

    @property
    def thresh_transform(self) -> ThreshTransform:
        return self._transform

    @property
    def is_active(self) -> bool:
        with self._cond:
            return self._active

    def get_frame_set(self, latest: bool = False) -> Optional[FrameSet]:
        """Next queued frame set (or newest, dropping the rest); None when finished."""
        with self._cond:
            while self._active and not self._queue:
                self._cond.wait()
            if not self._queue:
                log.debug("No more processed frames in queue!")
                self._cond.notify_all()
                return None
            if latest:
                frame_set = self._queue[-1]
                dropped = len(self._queue) - 1
                if dropped:
                    log.warning("Warning! Dropping %d frame/s from input processed frame queues!", dropped)
                self._queue.clear()
            else:
                frame_set = self._queue.popleft()
                if self._queue:
                    log.debug("%d frames remaining in processed frame queue.", len(self._queue))
            self._cond.notify_all()
            return frame_set

    def terminate(self) -> None:
        """Ask the grabbing thread to stop; queued frames stay available."""
        with self._cond:
            self._active = False
            self._cond.notify_all()

    def close(self) -> None:
        """Stop grabbing and wait for the thread to finish."""
        log.info("Closing input stream")
        self.terminate()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> FrameGrabber:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _process_frame(self, frame: np.ndarray) -> np.ndarray:
        grey = to_grey(frame, self._transform)
        remap_grey = np.asarray(self._remapper.apply(grey), dtype=np.uint8)
        remap_blur = median_blur3(remap_grey)
        return threshold_remap(
            remap_grey, remap_blur, self._remap_mask, self._thresh_win, self._thresh_ratio
        )

    def _process(self) -> None:
        try:
            self._source.rewind()
            log.debug("Starting frame grabbing loop!")
            cnt = 0
            while True:
                with self._cond:
                    while (
                        self._active
                        and self._max_buf_len > 0
                        and len(self._queue) >= self._max_buf_len
                    ):
                        self._cond.wait()
                    if not self._active:
                        break

                frame = self._source.grab()
                if frame is not None and self._max_frame_cnt > 0:
                    cnt += 1
                if frame is None or (self._max_frame_cnt > 0 and cnt > self._max_frame_cnt):
                    if frame is not None:
                        log.info("Max frame count (%d) reached!", self._max_frame_cnt)
                    else:
                        log.error("Error grabbing new frame!")
                    break

                timestamp = float(self._source.timestamp)
                ms_since_midnight = float(self._source.ms_since_midnight)
                frame = np.asarray(frame)
                remap = self._process_frame(frame)

                with self._cond:
                    self._queue.append(FrameSet(frame, remap, timestamp, ms_since_midnight))
                    self._cond.notify_all()
                    log.debug("Processed frame added to input queue (l = %d).", len(self._queue))
        finally:
            with self._cond:
                self._active = False
                self._cond.notify_all()
            log.debug("Stopping frame grabbing loop!")