"""RegisterPort: the asynchronous CV access contract consumed by the identification driver."""

from typing import Protocol, runtime_checkable

from .types import Outcome


@runtime_checkable
class RegisterPort(Protocol):
    """
    Asynchronous access to a decoder's CVs over a programming link.

    Implementations own retries and timeouts. ``read_register`` may return
    ``Absent`` only when called with ``optional=True``; any other failure is
    reported as ``Failure``.
    """

    async def read_register(self, address: int, *, optional: bool = False) -> Outcome:
        ...

    async def write_register(self, address: int, value: int) -> Outcome:
        ...
