"""SimulatedDecoder: in-memory decoder CV image implementing RegisterPort, loadable from JSON."""

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from .errors import InvalidAssignmentError, InvalidImageError
from .normalize import normalize_cv
from .types import Absent, Failure, Outcome, Value

logger = logging.getLogger(__name__)

CVValue = int | Sequence[int]


def _parse_value(source: str, cv: int, raw: Any) -> list[int]:
    """Return the list of byte values served for ``cv``; a scalar becomes a one-element list."""
    values = raw if isinstance(raw, list) else [raw]
    if not values:
        raise InvalidImageError(source, f"CV {cv} has an empty value list")
    out: list[int] = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidImageError(source, f"CV {cv} value {v!r} is not an integer")
        if not 0 <= v <= 255:
            raise InvalidImageError(source, f"CV {cv} value {v} out of range 0-255")
        out.append(v)
    return out


def _image_cv(source: str, raw: Any) -> int:
    """Return the CV number for an image key or ``fail`` entry ("8", "CV8" or 8)."""
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise InvalidImageError(source, f"CV {raw!r} must be a number or string")
    try:
        return normalize_cv(str(raw))
    except InvalidAssignmentError as e:
        raise InvalidImageError(source, str(e)) from e


class SimulatedDecoder:
    """
    A decoder on a simulated programming track.

    ``cvs`` maps CV numbers to a byte, or to a list of bytes served on
    successive reads (the last one repeats). CVs missing from the image read
    as Absent for optional reads and Failure otherwise; CVs listed in
    ``fail`` always fail. Every operation is appended to ``log``.
    """

    def __init__(self, cvs: Mapping[int, CVValue], fail: Iterable[int] = (), source: str = "<memory>") -> None:
        self._source = source
        self._cvs: dict[int, list[int]] = {}
        for cv, raw in cvs.items():
            self.set_cv(int(cv), raw)
        self._fail = frozenset(int(cv) for cv in fail)
        self.log: list[tuple[str, int, int | None]] = []
        logger.debug("SimulatedDecoder loaded from %s: %d CVs", source, len(self._cvs))

    async def read_register(self, address: int, *, optional: bool = False) -> Outcome:
        if address in self._fail:
            self.log.append(("read", address, None))
            return Failure(f"CV {address} read failed")
        values = self._cvs.get(address)
        if values is None:
            self.log.append(("read", address, None))
            if optional:
                return Absent()
            return Failure(f"CV {address} not implemented")
        value = values.pop(0) if len(values) > 1 else values[0]
        self.log.append(("read", address, value))
        return Value(value)

    async def write_register(self, address: int, value: int) -> Outcome:
        self.log.append(("write", address, value))
        if address in self._fail:
            return Failure(f"CV {address} write failed")
        self._cvs[address] = [value]
        return Value(value)

    def set_cv(self, address: int, value: CVValue) -> None:
        """Set or replace the value(s) served for a CV."""
        raw = list(value) if isinstance(value, (list, tuple)) else value
        self._cvs[address] = _parse_value(self._source, address, raw)

    def __len__(self) -> int:
        return len(self._cvs)

    @property
    def source(self) -> str:
        return self._source


def image_from_dict(data: Any, source: str = "<memory>") -> SimulatedDecoder:
    """
    Build a SimulatedDecoder from decoded JSON.

    Accepts ``{"cvs": {...}, "fail": [...]}`` or a flat ``{"8": 151, ...}`` mapping.
    CV keys may be written "8" or "CV8".
    """
    if not isinstance(data, dict):
        raise InvalidImageError(source, "Decoder image must be a JSON object")
    if "cvs" in data:
        raw_cvs = data["cvs"]
        raw_fail = data.get("fail", [])
    else:
        raw_cvs = data
        raw_fail = []
    if not isinstance(raw_cvs, dict):
        raise InvalidImageError(source, "'cvs' must be a JSON object")
    if not isinstance(raw_fail, list):
        raise InvalidImageError(source, "'fail' must be a list of CV numbers")

    cvs: dict[int, list[int]] = {}
    for key, raw in raw_cvs.items():
        cv = _image_cv(source, key)
        if cv in cvs:
            raise InvalidImageError(source, f"Duplicate CV in image: {cv}")
        cvs[cv] = _parse_value(source, cv, raw)
    fail = [_image_cv(source, cv) for cv in raw_fail]
    return SimulatedDecoder(cvs, fail=fail, source=source)


def load_image(path: Path | str) -> SimulatedDecoder:
    """Load a decoder CV image from a JSON file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Decoder image not found: {path}") from None
    except json.JSONDecodeError as e:
        raise InvalidImageError(str(path), f"Malformed JSON in {path}: {e}") from e
    return image_from_dict(data, source=str(path))
