"""Core data model: manufacturers, port outcomes, machine actions and the identification session."""

from dataclasses import dataclass, field
from enum import Enum

MANUFACTURER_CV = 8
MODEL_CV = 7

MAX_CV = 1024


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 255:
        raise ValueError(f"{name} must be a byte (0-255), got {value}")


def _check_cv(address: int) -> None:
    if not 1 <= address <= MAX_CV:
        raise ValueError(f"CV address must be 1-{MAX_CV}, got {address}")


class Manufacturer(Enum):
    """Manufacturers with a known product ID procedure, keyed by their CV8 value."""

    DIETZ = 115
    DIY = 13
    DOEHLER = 97
    ESU = 151
    HARMAN = 98
    HORNBY = 48
    QSI = 113
    SOUNDTRAXX = 141
    TCS = 153
    TRAINOMATIC = 78
    ZIMO = 145
    UNKNOWN = -1

    @classmethod
    def for_code(cls, code: int) -> "Manufacturer":
        """Return the manufacturer for a CV8 value, UNKNOWN if it has no product ID procedure."""
        if code < 0:
            return cls.UNKNOWN
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


# ---------------------------------------------------------------------------
# Register port outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Value:
    """The operation succeeded; for reads, ``value`` is the CV contents."""

    value: int

    def __post_init__(self) -> None:
        _check_byte("value", self.value)


@dataclass(frozen=True)
class Absent:
    """An optional read found no such CV on this decoder."""


@dataclass(frozen=True)
class Failure:
    """The operation failed on the programming link."""

    reason: str = "unknown error"


Outcome = Value | Absent | Failure


# ---------------------------------------------------------------------------
# State machine actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IssueRead:
    address: int
    optional: bool = False
    message: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        _check_cv(self.address)


@dataclass(frozen=True)
class IssueWrite:
    address: int
    value: int
    message: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        _check_cv(self.address)
        _check_byte("value", self.value)


@dataclass(frozen=True)
class Complete:
    """Final result of an identification run; ``product_id`` is None when it cannot be determined."""

    manufacturer_code: int | None
    model_code: int | None
    product_id: int | None = None

    def __post_init__(self) -> None:
        if self.product_id is not None and not 0 <= self.product_id <= 0xFFFFFFFF:
            raise ValueError(f"product_id must be unsigned 32-bit, got {self.product_id}")

    @property
    def manufacturer(self) -> Manufacturer:
        if self.manufacturer_code is None:
            return Manufacturer.UNKNOWN
        return Manufacturer.for_code(self.manufacturer_code)


Operation = IssueRead | IssueWrite
Action = IssueRead | IssueWrite | Complete


@dataclass
class IdentificationSession:
    """Mutable record of one identification run. Fields are written once, in step order."""

    manufacturer_code: int | None = None
    manufacturer: Manufacturer | None = None
    model_code: int | None = None
    accumulator: list[int] = field(default_factory=list)
    product_id: int | None = None
    step: int = 0
    optional_pending: bool = False
