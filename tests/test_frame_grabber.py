import time

import numpy as np
import pytest

from fictrac.frame_grabber import (
    FrameGrabber,
    FrameSet,
    ThreshTransform,
    median_blur3,
    parse_thresh_transform,
    threshold_remap,
    to_grey,
)


class ListSource:
    def __init__(self, frames):
        self._frames = list(frames)
        self._i = 0
        self.timestamp = 0.0
        self.ms_since_midnight = 0.0
        self.rewinds = 0

    def rewind(self):
        self._i = 0
        self.rewinds += 1
        return True

    def grab(self):
        if self._i >= len(self._frames):
            return None
        frame = self._frames[self._i]
        self._i += 1
        self.timestamp = 10.0 * self._i
        self.ms_since_midnight = 1000.0 + self._i
        return frame.copy()


class IdentityRemap:
    def __init__(self, w, h):
        self.src_w = self.dst_w = w
        self.src_h = self.dst_h = h

    def apply(self, img):
        return np.array(img, copy=True)


W, H = 10, 6


def split_frame():
    frame = np.full((H, W, 3), 50, dtype=np.uint8)
    frame[:, W // 2 :] = 200
    return frame


def wait_inactive(grabber, timeout=5.0):
    deadline = time.monotonic() + timeout
    while grabber.is_active and time.monotonic() < deadline:
        time.sleep(0.01)


@pytest.mark.parametrize(
    "name, expected",
    [
        ("red", ThreshTransform.RED),
        ("r", ThreshTransform.RED),
        ("green", ThreshTransform.GREEN),
        ("g", ThreshTransform.GREEN),
        ("blue", ThreshTransform.BLUE),
        ("b", ThreshTransform.BLUE),
        ("grey", ThreshTransform.GREY),
        ("purple", ThreshTransform.GREY),
    ],
)
def test_parse_thresh_transform(name, expected):
    assert parse_thresh_transform(name) is expected


def test_to_grey_picks_channels():
    frame = np.zeros((2, 2, 3), dtype=np.uint8)
    frame[..., 0] = 11
    frame[..., 1] = 22
    frame[..., 2] = 33
    assert to_grey(frame, ThreshTransform.BLUE).tolist() == [[11, 11], [11, 11]]
    assert to_grey(frame, ThreshTransform.GREEN).tolist() == [[22, 22], [22, 22]]
    assert to_grey(frame, ThreshTransform.RED).tolist() == [[33, 33], [33, 33]]


def test_to_grey_of_neutral_colour_keeps_level():
    for level in (0, 50, 255):
        frame = np.full((3, 4, 3), level, dtype=np.uint8)
        grey = to_grey(frame)
        assert grey.shape == (3, 4)
        assert np.all(grey == level)


def test_to_grey_passes_single_channel_through():
    img = np.arange(12, dtype=np.uint8).reshape(3, 4)
    assert np.array_equal(to_grey(img, ThreshTransform.RED), img)


def test_median_blur_removes_isolated_spike():
    img = np.zeros((5, 5), dtype=np.uint8)
    img[2, 2] = 200
    assert median_blur3(img).tolist() == [[0] * 5 for _ in range(5)]


def test_median_blur_keeps_constant_image():
    img = np.full((4, 6), 77, dtype=np.uint8)
    assert np.array_equal(median_blur3(img), img)


def test_threshold_masked_out_is_unknown():
    grey = np.full((4, 4), 90, dtype=np.uint8)
    mask = np.zeros((4, 4), dtype=np.uint8)
    out = threshold_remap(grey, grey, mask, 3, 1.0)
    assert out.tolist() == [[128] * 4 for _ in range(4)]


def test_threshold_uniform_image_is_dark():
    grey = np.full((4, 4), 90, dtype=np.uint8)
    mask = np.full((4, 4), 255, dtype=np.uint8)
    out = threshold_remap(grey, grey, mask, 3, 1.0)
    assert out.tolist() == [[0] * 4 for _ in range(4)]


def test_threshold_splits_dark_and_bright():
    grey = split_frame()[..., 0]
    mask = np.full((H, W), 255, dtype=np.uint8)
    out = threshold_remap(grey, grey, mask, 2 * W + 1, 1.0)
    expected_row = [0] * (W // 2) + [255] * (W - W // 2)
    assert out.tolist() == [expected_row for _ in range(H)]


def test_threshold_ignores_overexposed_in_max():
    grey = np.full((3, 3), 100, dtype=np.uint8)
    grey[1, 1] = 255
    mask = np.full((3, 3), 255, dtype=np.uint8)
    out = threshold_remap(grey, grey, mask, 3, 1.0)
    assert out[1, 1] == 255
    assert out[0, 0] == 0


def test_threshold_rejects_even_window():
    img = np.zeros((3, 3), dtype=np.uint8)
    with pytest.raises(ValueError):
        threshold_remap(img, img, img, 2, 1.0)


def test_grabber_delivers_frames_in_order():
    frames = [split_frame() for _ in range(3)]
    source = ListSource(frames)
    mask = np.full((H, W), 255, dtype=np.uint8)
    with FrameGrabber(source, IdentityRemap(W, H), mask, 1.0, 1.0, "grey", 1, 0) as grabber:
        sets = []
        while (fs := grabber.get_frame_set()) is not None:
            sets.append(fs)
    assert [fs.timestamp for fs in sets] == [10.0, 20.0, 30.0]
    assert [fs.ms_since_midnight for fs in sets] == [1001.0, 1002.0, 1003.0]
    assert source.rewinds == 1
    assert np.array_equal(sets[0].frame, frames[0])
    assert np.all(sets[0].remap[:, : W // 2] == 0)
    assert np.all(sets[0].remap[:, W // 2 :] == 255)


def test_grabber_respects_max_frame_count():
    source = ListSource([split_frame() for _ in range(5)])
    mask = np.full((H, W), 255, dtype=np.uint8)
    with FrameGrabber(source, IdentityRemap(W, H), mask, 1.0, 0.2, "grey", 0, 2) as grabber:
        timestamps = []
        while (fs := grabber.get_frame_set()) is not None:
            timestamps.append(fs.timestamp)
    assert timestamps == [10.0, 20.0]


def test_grabber_latest_drops_older_frames():
    source = ListSource([split_frame() for _ in range(4)])
    mask = np.full((H, W), 255, dtype=np.uint8)
    with FrameGrabber(source, IdentityRemap(W, H), mask) as grabber:
        wait_inactive(grabber)
        latest = grabber.get_frame_set(latest=True)
        after = grabber.get_frame_set()
    assert isinstance(latest, FrameSet)
    assert latest.timestamp == 40.0
    assert after is None


def test_grabber_masked_pixels_are_unknown():
    source = ListSource([split_frame()])
    mask = np.full((H, W), 255, dtype=np.uint8)
    mask[0, :] = 0
    with FrameGrabber(source, IdentityRemap(W, H), mask) as grabber:
        fs = grabber.get_frame_set()
    assert fs.remap[0].tolist() == [128] * W
    assert int(np.count_nonzero(fs.remap[1:, :] == 128)) == 0


def test_grabber_invalid_parameters_fall_back():
    source = ListSource([])
    mask = np.full((H, W), 255, dtype=np.uint8)
    with FrameGrabber(source, IdentityRemap(W, H), mask, -2.0, 1.5, "r") as grabber:
        assert grabber.thresh_ratio == 1.0
        assert grabber.thresh_win == 3
        assert grabber.thresh_transform is ThreshTransform.RED
        assert grabber.get_frame_set() is None


def test_grabber_terminate_ends_stream():
    source = ListSource([split_frame() for _ in range(50)])
    mask = np.full((H, W), 255, dtype=np.uint8)
    grabber = FrameGrabber(source, IdentityRemap(W, H), mask, 1.0, 0.2, "grey", 1, 0)
    try:
        grabber.terminate()
        wait_inactive(grabber)
        drained = 0
        while grabber.get_frame_set() is not None:
            drained += 1
        assert not grabber.is_active
        assert drained <= 1
    finally:
        grabber.close()


def test_grabber_rejects_mask_of_wrong_shape():
    with pytest.raises(ValueError):
        FrameGrabber(ListSource([]), IdentityRemap(W, H), np.zeros((H + 1, W), dtype=np.uint8))