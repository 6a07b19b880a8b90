"""pydcc-ident: identify DCC decoders (manufacturer, model, product ID) over a programming link."""

__version__ = "0.1.0"

from .errors import (
    InvalidAssignmentError,
    InvalidImageError,
    ModbusIOError,
    PyDCCIdentError,
    RegisterAccessFailure,
)
from .identify import IdentifyDecoder, identify
from .modbus_port import ModbusRegisterPort
from .normalize import normalize_cv, parse_assignment
from .port import RegisterPort
from .protocols import PROTOCOL_TABLE, ProtocolEntry, lookup
from .simulator import SimulatedDecoder, load_image
from .types import (
    Absent,
    Complete,
    Failure,
    IdentificationSession,
    IssueRead,
    IssueWrite,
    Manufacturer,
    Value,
)

__all__ = [
    "__version__",
    "IdentifyDecoder",
    "identify",
    "InvalidAssignmentError",
    "InvalidImageError",
    "ModbusIOError",
    "PyDCCIdentError",
    "RegisterAccessFailure",
    "ModbusRegisterPort",
    "normalize_cv",
    "parse_assignment",
    "RegisterPort",
    "PROTOCOL_TABLE",
    "ProtocolEntry",
    "lookup",
    "SimulatedDecoder",
    "load_image",
    "Absent",
    "Complete",
    "Failure",
    "IdentificationSession",
    "IssueRead",
    "IssueWrite",
    "Manufacturer",
    "Value",
]
