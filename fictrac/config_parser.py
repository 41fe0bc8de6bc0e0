"""Read and write simple ``key : value`` configuration files."""

from __future__ import annotations

import datetime
import logging
import math
import re
from collections.abc import Sequence
from typing import Callable, Iterator, TypeVar

log = logging.getLogger(__name__)

VERSION = "2.1.2"

_WHITESPACE = ", \t\n"
_INT_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")
_FLOAT_RE = re.compile(
    r"[ \t\n\v\f\r]*([+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?"
    r"|inf(?:inity)?|nan))",
    re.IGNORECASE,
)

T = TypeVar("T")


class ConfigError(Exception):
    """Raised when a config file cannot be read, written or interpreted."""


def _find_first_of(text: str, chars: str, pos: int) -> int:
    return next((i for i in range(pos, len(text)) if text[i] in chars), -1)


def _find_first_not_of(text: str, chars: str, pos: int) -> int:
    return next((i for i in range(pos, len(text)) if text[i] not in chars), -1)


def _stoi(text: str) -> int:
    """Parse a leading 32-bit integer, ignoring any trailing characters."""
    match = _INT_RE.match(text)
    if not match:
        raise ValueError(f"no integer in {text!r}")
    value = int(match.group(1))
    if not -(2**31) <= value < 2**31:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _stod(text: str) -> float:
    """Parse a leading floating-point number, ignoring trailing characters."""
    match = _FLOAT_RE.match(text)
    if not match:
        raise ValueError(f"no number in {text!r}")
    token = match.group(1)
    value = float(token)
    if math.isinf(value) and "inf" not in token.lower():
        raise ValueError(f"number out of range: {text!r}")
    return value


def _parse_items(
    text: str, end: int, convert: Callable[[str], T], key: str
) -> tuple[list[T], int]:
    """Parse tokens after position ``end`` until a closing brace."""
    values: list[T] = []
    while end != -1:
        begin = _find_first_not_of(text, _WHITESPACE, end + 1)
        if begin == -1:
            return values, -1
        end = _find_first_of(text, _WHITESPACE, begin)
        token = text[begin:] if end == -1 else text[begin:end]
        if token.startswith("}"):
            break
        try:
            values.append(convert(token))
        except ValueError as exc:
            raise ConfigError(f"error parsing config value ({key} : {token}): {exc}") from exc
    return values, end


def _format_scalar(val: object) -> str:
    if isinstance(val, bool):
        return "y" if val else "n"
    if isinstance(val, float):
        return repr(val)
    return str(val)


def _format_value(val: object) -> str:
    if isinstance(val, (str, bytes)) or not isinstance(val, Sequence):
        return _format_scalar(val)
    items = ", ".join(_format_value(v) for v in val)
    return f"{{ {items} }}" if items else "{ }"


class ConfigParser:
    """Key/value store backed by a plain-text config file."""

    def __init__(self, fn: str | None = None) -> None:
        self._data: dict[str, str] = {}
        self._comments: list[str] = []
        self._fn: str | None = None
        if fn is not None:
            self.read(fn)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._data))

    @property
    def comments(self) -> list[str]:
        """Comment lines kept from the last file read."""
        return list(self._comments)

    def read(self, fn: str) -> int:
        """Parse ``fn``, replacing current contents; return number of pairs."""
        log.info("Looking for config file: %s ..", fn)
        try:
            with open(fn, encoding="utf-8", errors="surrogateescape", newline="") as f:
                text = f.read()
        except OSError as exc:
            raise ConfigError(f"could not open config file {fn} for reading") from exc

        self._fn = str(fn)
        self._data.clear()
        self._comments.clear()
        for line in text.split("\n"):
            if len(line) < 3 or line.startswith("##"):
                continue
            if line[0] in "#%":
                self._comments.append(line)
                continue
            delim = line.find(":")
            if delim == -1:
                continue
            key = line[:delim].rstrip(_WHITESPACE)
            begin = _find_first_not_of(line, _WHITESPACE, delim + 1)
            val = "" if begin == -1 else line[begin:].replace("\r", "")
            self._data[key] = val
            log.debug("Extracted key: |%s|  val: |%s|", key, val)

        log.info("Config file parsed (%d key/value pairs).", len(self._data))
        return len(self._data)

    def write(self, fn: str | None = None) -> int:
        """Write all pairs (sorted by key) and comments; return bytes written."""
        target = fn if fn is not None else self._fn
        if target is None:
            raise ConfigError("no config file name to write to")

        build_date = datetime.date.today().strftime("%b %d %Y")
        parts = [f"## FicTrac v{VERSION} config file (build date {build_date})\n"]
        parts.extend(f"{key:<16} : {val}\n" for key, val in sorted(self._data.items()))
        if self._comments:
            parts.append("\n")
            parts.extend(f"{c}\n" for c in self._comments)
        payload = "".join(parts).encode("utf-8", errors="surrogateescape")

        try:
            with open(target, "wb") as f:
                f.write(payload)
        except OSError as exc:
            raise ConfigError(f"could not open config file {target} for writing") from exc

        log.debug("Wrote %d bytes to disk!", len(payload))
        return len(payload)

    def get(self, key: str) -> str:
        """Raw value for ``key``, or an empty string if absent."""
        val = self._data.get(key)
        if val is None:
            log.debug("Key (%s) not found.", key)
            return ""
        return val

    def get_str(self, key: str) -> str | None:
        """Raw value for ``key``, or None if absent."""
        val = self._data.get(key)
        if val is None:
            log.debug("Key (%s) not found.", key)
        return val

    def _get_scalar(self, key: str, convert: Callable[[str], T], kind: str) -> T | None:
        text = self.get_str(key)
        if text is None:
            return None
        try:
            return convert(text)
        except ValueError as exc:
            raise ConfigError(f"error parsing config value ({key} : {text}) as {kind}: {exc}") from exc

    def get_int(self, key: str) -> int | None:
        return self._get_scalar(key, _stoi, "INT")

    def get_dbl(self, key: str) -> float | None:
        return self._get_scalar(key, _stod, "DBL")

    def get_bool(self, key: str) -> bool | None:
        text = self.get_str(key)
        if text is None:
            return None
        if text in ("Y", "y", "1"):
            return True
        if text in ("N", "n", "0"):
            return False
        raise ConfigError(f"error parsing config value ({key} : {text}) as BOOL")

    def get_vec_int(self, key: str) -> list[int] | None:
        text = self.get_str(key)
        if text is None:
            return None
        values, _ = _parse_items(text, text.find("{"), _stoi, key)
        return values

    def get_vec_dbl(self, key: str) -> list[float] | None:
        text = self.get_str(key)
        if text is None:
            return None
        values, _ = _parse_items(text, text.find("{"), _stod, key)
        return values

    def get_vvec_int(self, key: str) -> list[list[int]] | None:
        text = self.get_str(key)
        if text is None:
            return None
        polys: list[list[int]] = []
        end = text.find("{")
        while end != -1:
            end = text.find("{", end + 1)
            poly, end = _parse_items(text, end, _stoi, key)
            if poly:
                polys.append(poly)
        return polys

    def add(self, key: str, val: object) -> None:
        """Set ``key`` to a string, number, bool, list or list of lists."""
        self._data[key] = _format_value(val)

    def print_all(self) -> str:
        """Log all pairs at debug level and return the listing."""
        listing = "".join(f"\t{k}\t: {v}\n" for k, v in sorted(self._data.items()))
        log.debug("Config file (%s):\n", self._fn)
        log.debug("%s", listing)
        return listing