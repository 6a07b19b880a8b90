"""Tests for the IdentifyDecoder state machine and the identify() driver (simulated decoders)."""

import asyncio

import pytest

from pydcc_ident import IdentifyDecoder, SimulatedDecoder, identify
from pydcc_ident.errors import RegisterAccessFailure
from pydcc_ident.types import (
    Absent,
    Complete,
    Failure,
    IssueRead,
    IssueWrite,
    Manufacturer,
    Value,
)


def run(cvs: dict, fail: tuple[int, ...] = ()) -> tuple[Complete, SimulatedDecoder]:
    decoder = SimulatedDecoder(cvs, fail=fail)
    result = asyncio.run(identify(decoder))
    return result, decoder


def reads(decoder: SimulatedDecoder) -> list[int]:
    return [address for op, address, _ in decoder.log if op == "read"]


# ============================================================================
# Step protocol
# ============================================================================


class TestStepProtocol:
    """Manufacturer and model reads, terminal cases and misuse."""

    def test_start_reads_manufacturer_cv(self) -> None:
        machine = IdentifyDecoder()
        assert machine.start() == IssueRead(8)
        assert machine.session.step == 1

    def test_manufacturer_result_reads_model_cv(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        assert machine.advance(Value(151)) == IssueRead(7)
        assert machine.session.manufacturer is Manufacturer.ESU
        assert machine.session.manufacturer_code == 151

    def test_unknown_manufacturer_completes_at_step_3(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(200))
        action = machine.advance(Value(5))
        assert action == Complete(200, 5, None)
        assert machine.session.step == 3
        assert machine.session.manufacturer is Manufacturer.UNKNOWN
        assert machine.done

    def test_unknown_manufacturer_never_reads_past_model(self) -> None:
        result, decoder = run({8: 1, 7: 3})
        assert result == Complete(1, 3, None)
        assert reads(decoder) == [8, 7]

    def test_advance_before_start_raises(self) -> None:
        with pytest.raises(RuntimeError, match="before start"):
            IdentifyDecoder().advance(Value(1))

    def test_start_twice_raises(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        with pytest.raises(RuntimeError, match="already started"):
            machine.start()

    def test_advance_after_complete_raises(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(1))
        machine.advance(Value(1))
        with pytest.raises(RuntimeError, match="already complete"):
            machine.advance(Value(1))

    def test_step_increases_per_outcome(self) -> None:
        machine = IdentifyDecoder()
        steps = [machine.session.step]
        machine.start()
        steps.append(machine.session.step)
        for value in (145, 2, 9):
            machine.advance(Value(value))
            steps.append(machine.session.step)
        assert steps == [0, 1, 2, 3, 4]
        assert machine.result == Complete(145, 2, 9)

    def test_identical_scripts_give_identical_results(self) -> None:
        cvs = {8: 153, 7: 6, 249: 130, 248: 1, 111: 2, 110: 3}
        first, _ = run(cvs)
        second, _ = run(cvs)
        assert first == second


# ============================================================================
# Manufacturer procedures
# ============================================================================


class TestManufacturers:
    def test_dietz(self) -> None:
        result, _ = run({8: 115, 7: 1, 128: 7})
        assert result.product_id == 7

    def test_diy_big_endian_four_bytes(self) -> None:
        result, decoder = run({8: 13, 7: 1, 47: 1, 48: 2, 49: 3, 50: 4})
        assert result.product_id == 0x01020304
        assert reads(decoder) == [8, 7, 47, 48, 49, 50]

    def test_doehler_present(self) -> None:
        result, _ = run({8: 97, 7: 1, 261: 42})
        assert result.product_id == 42

    def test_doehler_absent_stops(self) -> None:
        result, decoder = run({8: 97, 7: 1})
        assert result == Complete(97, 1, None)
        assert reads(decoder) == [8, 7, 261]
        assert len(decoder.log) == 3

    def test_doehler_optional_failure_treated_as_absent(self) -> None:
        result, _ = run({8: 97, 7: 1, 261: 42}, fail=(261,))
        assert result.product_id is None

    def test_esu_railcom_product_id(self) -> None:
        result, decoder = run({8: 151, 7: 255, 261: 0x10, 262: 0x00, 263: 0x00, 264: 0x00})
        assert result.product_id == 16
        assert decoder.log[2:4] == [("write", 31, 0), ("write", 32, 255)]
        assert reads(decoder) == [8, 7, 261, 262, 263, 264]

    def test_esu_little_endian(self) -> None:
        result, _ = run({8: 151, 7: 255, 261: 0x04, 262: 0x03, 263: 0x02, 264: 0x01})
        assert result.product_id == 0x01020304

    def test_esu_other_model_has_no_product_id(self) -> None:
        result, decoder = run({8: 151, 7: 200})
        assert result == Complete(151, 200, None)
        assert decoder.log == [("read", 8, 151), ("read", 7, 200)]

    def test_harman(self) -> None:
        result, _ = run({8: 98, 7: 1, 112: 0x12, 113: 0x34})
        assert result.product_id == 0x1234

    def test_hornby_hn7000_reads_cv200_twice(self) -> None:
        result, decoder = run({8: 48, 7: 254, 200: [0x34, 0x12]})
        assert result.product_id == 0x1234
        assert reads(decoder) == [8, 7, 200, 200]

    def test_hornby_hn7000_optional_absent(self) -> None:
        result, decoder = run({8: 48, 7: 254})
        assert result.product_id is None
        assert reads(decoder) == [8, 7, 200]

    def test_hornby_other_plain_id(self) -> None:
        result, decoder = run({8: 48, 7: 10, 159: 20})
        assert result.product_id == 20
        assert reads(decoder) == [8, 7, 159]

    def test_hornby_other_extended_id(self) -> None:
        result, decoder = run({8: 48, 7: 10, 159: 143, 158: 2})
        assert result.product_id == (2 << 8) | 143
        assert reads(decoder) == [8, 7, 159, 158]

    def test_hornby_other_absent(self) -> None:
        result, _ = run({8: 48, 7: 10})
        assert result == Complete(48, 10, None)

    def test_qsi_write_read_interleaving(self) -> None:
        result, decoder = run({8: 113, 7: 1, 56: [0x01, 0x02]})
        assert result.product_id == 0x0102
        assert decoder.log[2:] == [
            ("write", 49, 254),
            ("write", 50, 4),
            ("read", 56, 0x01),
            ("write", 50, 5),
            ("read", 56, 0x02),
        ]

    def test_soundtraxx(self) -> None:
        result, _ = run({8: 141, 7: 71, 253: 0x02, 256: 0x34, 255: 0x05})
        assert result.product_id == 0x1534

    def test_soundtraxx_masks_cv255(self) -> None:
        result, _ = run({8: 141, 7: 70, 253: 0x00, 256: 0x00, 255: 0xFF})
        assert result.product_id == 0x700

    def test_soundtraxx_other_model(self) -> None:
        result, decoder = run({8: 141, 7: 73})
        assert result.product_id is None
        assert reads(decoder) == [8, 7]

    def test_tcs_mobile_decoder(self) -> None:
        result, decoder = run({8: 153, 7: 4, 249: 100})
        assert result.product_id == 100
        assert reads(decoder) == [8, 7, 249]

    def test_tcs_model_5_cv249_180(self) -> None:
        result, _ = run({8: 153, 7: 5, 249: 180, 248: 2, 111: 3, 110: 4})
        assert result.product_id == 180 + 2 * 256

    def test_tcs_full_four_bytes(self) -> None:
        result, decoder = run({8: 153, 7: 6, 249: 130, 248: 1, 111: 2, 110: 3})
        assert result.product_id == 130 + 256 + 2 * 65536 + 3 * 16777216
        assert reads(decoder) == [8, 7, 249, 248, 111, 110]

    def test_tcs_model_4_two_bytes(self) -> None:
        result, _ = run({8: 153, 7: 4, 249: 171, 248: 3, 111: 9, 110: 9})
        assert result.product_id == 171 + 3 * 256

    def test_tcs_fallback_lowest(self) -> None:
        result, _ = run({8: 153, 7: 3, 249: 140, 248: 3, 111: 9, 110: 9})
        assert result.product_id == 140

    def test_trainomatic(self) -> None:
        result, decoder = run({8: 78, 7: 1, 510: 0x01, 509: 0x02, 508: 0x03})
        assert result.product_id == 0x010203
        assert reads(decoder) == [8, 7, 510, 509, 508]

    def test_zimo(self) -> None:
        result, _ = run({8: 145, 7: 1, 250: 201})
        assert result.product_id == 201


# ============================================================================
# Optional-register policy and failures
# ============================================================================


class TestOptionalPolicy:
    def test_optional_pending_armed_and_cleared(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(48))
        action = machine.advance(Value(254))
        assert action == IssueRead(200, optional=True)
        assert machine.session.optional_pending is True
        action = machine.advance(Value(0x34))
        assert action == IssueRead(200)
        assert machine.session.optional_pending is False

    def test_absent_on_optional_read_completes(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(97))
        machine.advance(Value(1))
        assert machine.advance(Absent()) == Complete(97, 1, None)
        assert machine.session.product_id is None

    def test_absent_on_required_read_raises(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(98))
        machine.advance(Value(1))
        with pytest.raises(RegisterAccessFailure) as exc_info:
            machine.advance(Absent())
        assert exc_info.value.address == 112

    def test_required_failure_raises(self) -> None:
        with pytest.raises(RegisterAccessFailure) as exc_info:
            run({8: 145, 7: 1, 250: 3}, fail=(7,))
        assert exc_info.value.address == 7
        assert exc_info.value.step == 3

    def test_missing_required_cv_raises(self) -> None:
        with pytest.raises(RegisterAccessFailure, match="CV 128"):
            run({8: 115, 7: 1})

    def test_write_failure_raises(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(113))
        assert machine.advance(Value(1)) == IssueWrite(49, 254)
        with pytest.raises(RegisterAccessFailure, match="link down"):
            machine.advance(Failure("link down"))

    def test_failure_ends_run_without_resuming(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(115))
        assert machine.advance(Value(1)) == IssueRead(128)
        with pytest.raises(RegisterAccessFailure) as exc_info:
            machine.advance(Failure("link down"))
        assert machine.failed is exc_info.value
        assert not machine.done
        with pytest.raises(RuntimeError, match="aborted"):
            machine.advance(Value(7))
        assert machine.result is None
        assert machine.session.product_id is None
        assert machine.session.step == 4

    def test_failure_clears_optional_pending(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        machine.advance(Value(48))
        machine.advance(Value(254))
        machine.advance(Value(0x34))
        with pytest.raises(RegisterAccessFailure):
            machine.advance(Failure("timeout"))
        assert machine.session.optional_pending is False
        with pytest.raises(RuntimeError, match="aborted"):
            machine.advance(Absent())

    def test_resume_without_procedure_raises(self) -> None:
        machine = IdentifyDecoder()
        with pytest.raises(RuntimeError, match="no manufacturer procedure"):
            machine._resume(None)

    def test_accumulator_holds_read_bytes_only(self) -> None:
        machine = IdentifyDecoder()
        machine.start()
        for value in (151, 255, 0, 0, 0x10, 0x20, 0x30, 0x40):
            action = machine.advance(Value(value))
        assert action == Complete(151, 255, 0x40302010)
        assert machine.session.accumulator == [0x10, 0x20, 0x30, 0x40]


# ============================================================================
# Completion sink
# ============================================================================


def test_progress_messages_per_operation() -> None:
    messages: list[str] = []
    decoder = SimulatedDecoder({8: 78, 7: 1, 510: 1, 509: 2, 508: 3})
    asyncio.run(identify(decoder, on_progress=messages.append))
    assert messages[0] == "Read MFG ID - CV 8"
    assert messages[1] == "Read MFG version - CV 7"
    assert messages[-1] == "Done"
    assert len(messages) == len(decoder.log) + 1


def test_on_complete_called_once() -> None:
    results: list[Complete] = []
    machine = IdentifyDecoder(on_complete=results.append)
    machine.start()
    machine.advance(Value(145))
    machine.advance(Value(1))
    machine.advance(Value(55))
    assert results == [Complete(145, 1, 55)]
