#!/usr/bin/env python3
"""Example: identify the decoder on a Modbus TCP programming-track bridge."""

import asyncio
import sys

from pydcc_ident import ModbusRegisterPort, identify
from pydcc_ident.errors import ModbusIOError, RegisterAccessFailure


async def main() -> None:
    host = "192.168.1.20"  # change to your bridge IP
    port = 502
    unit_id = 1

    async with ModbusRegisterPort(host=host, port=port, unit_id=unit_id) as bridge:
        result = await identify(bridge, on_progress=print)
    print(f"mfg={result.manufacturer_code} ({result.manufacturer.name}) model={result.model_code}")
    print(f"productID={result.product_id}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except RegisterAccessFailure as e:
        print(f"Register access failed: {e}", file=sys.stderr)
        sys.exit(1)
    except ModbusIOError as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)
