"""Manufacturer protocol table: per-manufacturer CV sequences and product ID formulas.

Each manufacturer's procedure is a generator (a "script") that receives the
model code (CV7), yields the register operations it needs one at a time, is
sent the byte returned by each read, and finally returns the product ID, or
None when it cannot be determined for this model.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generator

from .types import IssueRead, IssueWrite, Manufacturer, Operation

logger = logging.getLogger(__name__)

Script = Generator[Operation, int, int | None]

HN7000_MODEL = 254
HORNBY_EXTENDED_ID = 143
ESU_RAILCOM_MODEL = 255
SOUNDTRAXX_MODELS = range(70, 73)  # Econami, Tsunami2, Blunami
TCS_MOBILE_LIMIT = 129


def _read(address: int, message: str, optional: bool = False) -> IssueRead:
    return IssueRead(address, optional=optional, message=message)


def _write(address: int, value: int, message: str) -> IssueWrite:
    return IssueWrite(address, value, message=message)


# ---------------------------------------------------------------------------
# Scripts
# ---------------------------------------------------------------------------


def _dietz(model: int) -> Script:
    return (yield _read(128, "Read productID CV 128"))


def _diy(model: int) -> Script:
    product_id = 0
    for n, address in enumerate((47, 48, 49, 50), start=1):
        value = yield _read(address, f"Read decoder product ID #{n} CV {address}")
        product_id = (product_id << 8) | value
    return product_id


def _doehler(model: int) -> Script:
    # CV261 only exists on 2020 and later firmware
    return (yield _read(261, "Read optional decoder ID CV 261", optional=True))


def _esu(model: int) -> Script:
    if model != ESU_RAILCOM_MODEL:
        return None
    yield _write(31, 0, "Set PI for Read productID")
    yield _write(32, 255, "Set SI for Read productID")
    product_id = 0
    for n, address in enumerate((261, 262, 263, 264)):
        value = yield _read(address, f"Read productID Byte {n + 1}")
        product_id += value << (8 * n)
    return product_id


def _harman(model: int) -> Script:
    high = yield _read(112, "Read decoder ID high CV 112")
    low = yield _read(113, "Read decoder ID low CV 113")
    return (high << 8) | low


def _hornby(model: int) -> Script:
    if model == HN7000_MODEL:
        low = yield _read(200, "Read optional decoder ID CV 200", optional=True)
        # TODO: HN7000 documentation places the high byte in CV201; confirm on hardware before changing
        high = yield _read(200, "Read Product ID High Byte")
        return (high << 8) | low

    value = yield _read(159, "Read optional decoder ID CV 159", optional=True)
    if value != HORNBY_EXTENDED_ID:
        return value
    high = yield _read(158, "Read Product ID High Byte")
    return (high << 8) | value


def _qsi(model: int) -> Script:
    yield _write(49, 254, "Set PI for Read Product ID High Byte")
    yield _write(50, 4, "Set SI for Read Product ID High Byte")
    high = yield _read(56, "Read Product ID High Byte")
    yield _write(50, 5, "Set SI for Read Product ID Low Byte")
    low = yield _read(56, "Read Product ID Low Byte")
    return (high << 8) | low


def _soundtraxx(model: int) -> Script:
    if model not in SOUNDTRAXX_MODELS:
        return None
    highest = yield _read(253, "Read productID high CV253")
    low = yield _read(256, "Read decoder productID low CV256")
    high = yield _read(255, "Read decoder productID CV255")
    return low | ((high & 0x7) << 8) | (highest << 11)


def tcs_product_id(model: int, lowest: int, low: int, high: int, highest: int) -> int:
    """Combine TCS CV249 (lowest), CV248 (low), CV111 (high) and CV110 (highest)."""
    if (129 <= lowest <= 135 and low == 5) or model >= 5:
        if lowest == 180 and model == 5:
            return lowest + (low << 8)
        return lowest + (low << 8) + (high << 16) + (highest << 24)
    if (129 <= lowest <= 135 or 170 <= lowest <= 172 or lowest == 180) and model == 4:
        return lowest + (low << 8)
    return lowest


def _tcs(model: int) -> Script:
    lowest = yield _read(249, "Read decoder ID CV 249")
    if lowest < TCS_MOBILE_LIMIT:
        return lowest
    low = yield _read(248, "Read decoder sound version number")
    high = yield _read(111, "Read decoder extended Version ID Low Byte")
    highest = yield _read(110, "Read decoder extended Version ID High Byte")
    return tcs_product_id(model, lowest, low, high, highest)


def _trainomatic(model: int) -> Script:
    high = yield _read(510, "Read productID #1 CV 510")
    low = yield _read(509, "Read productID #2 CV 509")
    lowest = yield _read(508, "Read productID #3 CV 508")
    return lowest + (low * 256) + (high * 65536)


def _zimo(model: int) -> Script:
    return (yield _read(250, "Read decoder ID CV 250"))


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProtocolEntry:
    """One row of the manufacturer protocol table."""

    manufacturer: Manufacturer
    registers: tuple[int, ...]
    optional: tuple[int, ...]
    formula: str
    script: Callable[[int], Script]
    models: str = "any"

    @property
    def code(self) -> int:
        return self.manufacturer.value

    def begin(self, model: int) -> Script:
        """Return a fresh script for a decoder reporting ``model`` in CV7."""
        return self.script(model)


_ENTRIES = (
    ProtocolEntry(Manufacturer.DIETZ, (128,), (), "CV128", _dietz),
    ProtocolEntry(
        Manufacturer.DIY, (47, 48, 49, 50), (),
        "CV47<<24 | CV48<<16 | CV49<<8 | CV50", _diy,
    ),
    ProtocolEntry(Manufacturer.DOEHLER, (261,), (261,), "CV261 (absent on pre-2020 firmware)", _doehler),
    ProtocolEntry(
        Manufacturer.ESU, (31, 32, 261, 262, 263, 264), (),
        "CV261 + CV262<<8 + CV263<<16 + CV264<<24, after CV31=0, CV32=255", _esu,
        models=str(ESU_RAILCOM_MODEL),
    ),
    ProtocolEntry(Manufacturer.HARMAN, (112, 113), (), "CV112<<8 | CV113", _harman),
    ProtocolEntry(
        Manufacturer.HORNBY, (200, 159, 158), (200, 159),
        "HN7000 (CV7=254): CV200<<8 | CV200; otherwise CV159, or CV158<<8 | 143 when CV159=143",
        _hornby,
    ),
    ProtocolEntry(
        Manufacturer.QSI, (49, 50, 56), (),
        "CV56<<8 | CV56, after CV49=254 with CV50=4 (high) and CV50=5 (low)", _qsi,
    ),
    ProtocolEntry(
        Manufacturer.SOUNDTRAXX, (253, 256, 255), (),
        "CV256 | (CV255 & 7)<<8 | CV253<<11", _soundtraxx,
        models="70-72",
    ),
    ProtocolEntry(
        Manufacturer.TCS, (249, 248, 111, 110), (),
        "CV249 when < 129, else combined with CV248, CV111, CV110 by model", _tcs,
    ),
    ProtocolEntry(
        Manufacturer.TRAINOMATIC, (510, 509, 508), (),
        "CV508 + CV509*256 + CV510*65536", _trainomatic,
    ),
    ProtocolEntry(Manufacturer.ZIMO, (250,), (), "CV250", _zimo),
)

PROTOCOL_TABLE: dict[Manufacturer, ProtocolEntry] = {e.manufacturer: e for e in _ENTRIES}


def lookup(code: int) -> ProtocolEntry | None:
    """Return the protocol entry for a CV8 value, or None for an unknown manufacturer."""
    entry = PROTOCOL_TABLE.get(Manufacturer.for_code(code))
    if entry is None:
        logger.debug("No product ID procedure for manufacturer code %d", code)
    return entry


def all_entries() -> list[ProtocolEntry]:
    """Return table rows ordered by manufacturer code."""
    return sorted(PROTOCOL_TABLE.values(), key=lambda e: e.code)
