# fictrac

Building blocks for tracking the rotation of a trackball from camera images:
3D vector and rotation helpers, camera projection models, image remapping
between camera models, a `key : value` configuration file format, frame
preprocessing with adaptive thresholding in a background thread, and a
localiser that estimates the ball's rotation against a map of its surface.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `fictrac.cmpoint`

`CmPoint` is an immutable 3D vector (`x`, `y`, `z`) with `dot`, `cross`,
`length`, `normalised`, arithmetic operators, iteration and indexing.
`CmPoint.from_az_el(az, el)` builds a unit vector from azimuth and elevation,
and `to_az_el_mag()` goes back. Rotation helpers include `rotation_about`,
`rotation_about_norm`, `rotation_to`, `orth_vec_norm` and
`rotated_about_orth_vec`; `transformed(m)` returns `m @ point` for a 3x3
matrix.

Module functions convert between representations:

- `omega_to_matrix(omega)` / `matrix_to_omega(m)`: angle-axis vector
  (angle = its length) to and from a 3x3 rotation matrix.
- `angle_axis_to_matrix(cos_angle, sin_angle, axis)`: matrix for a unit axis.
- `matrix_to_quat(m)`, `quat_normalise(q)`, `quat_to_angle_axis(q)`:
  quaternions as `(x, y, z, w)` tuples.

Functions taking a matrix raise `ValueError` if it is not 3x3.

### `fictrac.config_parser`

`ConfigParser(fn=None)` reads `key : value` files. Getters return `None`
when the key is absent and raise `ConfigError` when the value cannot be
parsed:

- `get(key)` (empty string if absent), `get_str`, `get_int`, `get_dbl`,
  `get_bool` (`y`/`Y`/`1` or `n`/`N`/`0`);
- `get_vec_int`, `get_vec_dbl` for `{ 1, 2, 3 }`;
- `get_vvec_int` for `{ { 1, 2 }, { 3, 4 } }`.

`add(key, val)` stores a string, number, bool (`y`/`n`), list or list of
lists. `write(fn=None)` writes a header line, all pairs sorted by key and
then the kept comment lines, returning the number of bytes written; with no
argument it writes back to the file last read. `read` and `write` raise
`ConfigError` if the file cannot be opened. `print_all()` logs the pairs at
debug level and returns the listing.

File format: lines shorter than three characters and lines starting with
`##` are dropped; lines starting with `#` or `%` are kept as comments; every
other line containing `:` becomes a key/value pair.

### `fictrac.camera_model`

`FisheyeCameraModel` (equidistant fisheye with a circular image area) and
`EquiAreaCameraModel` (equal-area cylindrical projection), built directly
or with `create_fisheye` and `create_equi_area`. Both offer
`pixel_to_vector(x, y)` returning `VectorResult(vector, valid)`,
`vector_to_pixel(point)` returning `PixelResult(x, y, valid)`,
`pixel_index_to_vector`, `vector_to_pixel_index` (pixel-centre offsets of
0.5), `valid_pixel` and `fov()`.

### `fictrac.camera_remap`

`CameraRemap(src, dst, trans=None)` builds lookup tables from each
destination pixel to a source position; `trans` is an optional callable
applied to each destination view vector. `set_transform(trans)` rebuilds
the tables, and `apply(src_img)` resamples an image bilinearly, leaving
unmapped pixels at zero.

### `fictrac.recorder` and `fictrac.logger`

`FileRecorder` writes text to a file and flushes after every write; it is a
context manager. `Logger(log_fn=None, stream=None)` prints messages at or
above its verbosity to `stream` (standard output by default) and writes
every message except `LogLevel.PRT` to a log file, named
`fictrac-<date>_<time>.log` unless given. `parse_verbosity` accepts
`debug`/`DBG`/`dbg`, `info`, `warn`, `error` and their short forms.

### `fictrac.frame_grabber`

`FrameGrabber(source, remapper, remap_mask, ...)` runs a background thread
that grabs frames from `source` (any object with `grab()` returning an
image or `None`, `rewind()`, and `timestamp` / `ms_since_midnight`
attributes), converts them to grey or a single channel, remaps them,
and applies an adaptive threshold. `get_frame_set(latest=False)` returns the
next `FrameSet` (or the newest, dropping the rest) and `None` once grabbing
has stopped and the queue is empty. `terminate()` and `close()` stop the
thread. The steps are also available as `to_grey`, `median_blur3` and
`threshold_remap`.

### `fictrac.localiser`

`Localiser(bound, tol, max_evals, sphere_model, sphere_map, roi_mask,
p1s_lut)` scores candidate rotations with `test_rotation(x)` (mean squared
difference between the ROI and the sphere map, or the largest float when too
few pixels overlap), and `search(roi_frame, r_roi, vx)` minimises that
score within `bound` of the guess `vx`, returning `SearchResult(omega, err)`.

## Example

```python
import math
from fictrac.cmpoint import CmPoint, omega_to_matrix, matrix_to_omega
from fictrac.config_parser import ConfigParser

omega = CmPoint(0.0, 0.0, math.pi / 4)
R = omega_to_matrix(omega)
print(matrix_to_omega(R))        # CmPoint(x=0.0, y=0.0, z=0.785...)

cfg = ConfigParser()
cfg.add("roi_c", [0.1, 0.2, 0.97])
cfg.write("config.txt")
print(ConfigParser("config.txt").get_vec_dbl("roi_c"))   # [0.1, 0.2, 0.97]
```

## What this package does not do

It is a library only: it installs no command. It does not capture from
cameras or read video files, has no interactive configuration window, and
does not run a complete tracking loop that accumulates a sphere map and
writes tracking output. Those pieces have to be supplied by the caller, for
example a frame source object for `FrameGrabber`.