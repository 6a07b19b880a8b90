"""ModbusRegisterPort: RegisterPort over a Modbus TCP programming-track bridge using pymodbus."""

import logging
from typing import Any

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException as PymodbusException

from .errors import ModbusIOError
from .types import Absent, Failure, Outcome, Value

logger = logging.getLogger(__name__)

# Modbus exception code returned by bridges for CVs the decoder does not implement
ILLEGAL_DATA_ADDRESS = 0x02


class ModbusRegisterPort:
    """
    Read/write decoder CVs exposed as holding registers by a Modbus TCP bridge.

    CV ``n`` maps to holding register offset ``n + cv_offset`` (default -1, so
    CV1 is offset 0). Retries and timeouts are delegated to the pymodbus client.
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        unit_id: int = 1,
        timeout: float = 3.0,
        retries: int = 3,
        cv_offset: int = -1,
    ) -> None:
        self._host = host
        self._port = port
        self._unit_id = unit_id
        self._timeout = timeout
        self._retries = retries
        if cv_offset < -1:
            raise ValueError(f"cv_offset must be >= -1 so CV1 maps to a valid register, got {cv_offset}")
        self._cv_offset = cv_offset
        self._client: AsyncModbusTcpClient | None = None

    async def _get_client(self) -> AsyncModbusTcpClient:
        if self._client is None:
            self._client = AsyncModbusTcpClient(
                host=self._host,
                port=self._port,
                timeout=self._timeout,
                retries=self._retries,
            )
            if not await self._client.connect():
                self._client = None
                raise ModbusIOError(
                    f"Failed to connect to {self._host}:{self._port}",
                    host=self._host,
                    port=self._port,
                )
            logger.debug("Connected to Modbus bridge %s:%d", self._host, self._port)
        return self._client

    def _offset(self, address: int) -> int:
        offset = address + self._cv_offset
        if offset < 0:
            raise ValueError(f"CV {address} maps to negative register offset {offset}")
        return offset

    async def read_register(self, address: int, *, optional: bool = False) -> Outcome:
        client = await self._get_client()
        offset = self._offset(address)
        try:
            rr = await client.read_holding_registers(offset, count=1, device_id=self._unit_id)
        except PymodbusException as e:
            logger.warning("CV %d read raised: %s", address, e)
            return Failure(str(e))

        if rr.isError():
            if optional and getattr(rr, "exception_code", None) == ILLEGAL_DATA_ADDRESS:
                logger.debug("CV %d not implemented by decoder", address)
                return Absent()
            return Failure(str(rr))
        registers = getattr(rr, "registers", None)
        if not registers:
            return Failure("Empty register response")
        value = int(registers[0])
        if value > 255:
            return Failure(f"CV {address} value out of range: {value}")
        return Value(value)

    async def write_register(self, address: int, value: int) -> Outcome:
        client = await self._get_client()
        offset = self._offset(address)
        try:
            rr = await client.write_register(offset, value, device_id=self._unit_id)
        except PymodbusException as e:
            logger.warning("CV %d write raised: %s", address, e)
            return Failure(str(e))
        if rr.isError():
            return Failure(str(rr))
        return Value(value)

    async def connect(self) -> None:
        """Establish the TCP connection to the bridge."""
        await self._get_client()

    def close(self) -> None:
        """Close the TCP connection."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Error closing Modbus client: %s", e)
            self._client = None

    async def __aenter__(self) -> "ModbusRegisterPort":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()
