#!/usr/bin/env python3
"""Example: drive IdentifyDecoder by hand, answering each register operation from a dict."""

from pydcc_ident import IdentifyDecoder
from pydcc_ident.types import Absent, Complete, IssueWrite, Value


def main() -> None:
    # SoundTraxx Tsunami2
    cvs = {8: 141, 7: 71, 253: 0x02, 256: 0x34, 255: 0x05}

    machine = IdentifyDecoder(on_progress=lambda m: print(f"  {m}"))
    action = machine.start()
    while not isinstance(action, Complete):
        if isinstance(action, IssueWrite):
            cvs[action.address] = action.value
            outcome = Value(action.value)
        elif action.address in cvs:
            outcome = Value(cvs[action.address])
        else:
            outcome = Absent()
        action = machine.advance(outcome)

    print(f"productID = {action.product_id} (0x{action.product_id:X})")


if __name__ == "__main__":
    main()
