"""IdentifyDecoder: state machine that reads CV8/CV7 and runs the manufacturer's product ID procedure."""

import logging
from typing import Callable

from .errors import RegisterAccessFailure
from .port import RegisterPort
from .protocols import Script, lookup
from .types import (
    MANUFACTURER_CV,
    MODEL_CV,
    Absent,
    Action,
    Complete,
    Failure,
    IdentificationSession,
    IssueRead,
    IssueWrite,
    Manufacturer,
    Operation,
    Outcome,
    Value,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
CompleteCallback = Callable[[Complete], None]


class IdentifyDecoder:
    """
    Drive one decoder identification run, one register operation at a time.

    ``start()`` returns the first operation; each ``advance(outcome)`` consumes
    the outcome of the previously returned operation and returns the next one,
    or a ``Complete`` carrying (manufacturer code, model code, product ID).
    The machine never talks to hardware itself; see ``identify()`` for an
    asyncio driver over a ``RegisterPort``.
    """

    def __init__(
        self,
        on_progress: ProgressCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> None:
        self.session = IdentificationSession()
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._script: Script | None = None
        self._pending: Operation | None = None
        self._result: Complete | None = None
        self._failed: RegisterAccessFailure | None = None

    @property
    def done(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Complete | None:
        return self._result

    @property
    def failed(self) -> RegisterAccessFailure | None:
        return self._failed

    def start(self) -> Action:
        """Step 1: read the manufacturer CV."""
        if self.session.step != 0:
            raise RuntimeError("identification already started")
        self.session.step = 1
        return self._issue(IssueRead(MANUFACTURER_CV, message=f"Read MFG ID - CV {MANUFACTURER_CV}"))

    def advance(self, outcome: Outcome) -> Action:
        """Consume the outcome of the last issued operation and return the next action."""
        session = self.session
        if session.step == 0:
            raise RuntimeError("advance() called before start()")
        if self._result is not None:
            raise RuntimeError("identification already complete")
        if self._failed is not None:
            raise RuntimeError("identification aborted") from self._failed

        session.step += 1
        logger.debug("Step %d: %r for %r", session.step, outcome, self._pending)

        if not isinstance(outcome, Value):
            return self._missing(outcome)
        session.optional_pending = False
        value = outcome.value

        if session.step == 2:
            session.manufacturer_code = value
            session.manufacturer = Manufacturer.for_code(value)
            return self._issue(IssueRead(MODEL_CV, message=f"Read MFG version - CV {MODEL_CV}"))

        if session.step == 3:
            session.model_code = value
            entry = lookup(session.manufacturer_code)
            if entry is None:
                logger.info("Manufacturer %d has no product ID procedure", session.manufacturer_code)
                return self._complete(None)
            self._script = entry.begin(value)
            return self._resume(None)

        if isinstance(self._pending, IssueRead):
            session.accumulator.append(value)
        return self._resume(value)

    def _missing(self, outcome: Absent | Failure) -> Action:
        """Apply the optional-register policy to an Absent or Failure outcome."""
        session = self.session
        pending = self._pending
        if session.optional_pending and isinstance(pending, IssueRead):
            logger.info("Optional CV %d not present, no product ID", pending.address)
            session.optional_pending = False
            return self._complete(None)
        reason = outcome.reason if isinstance(outcome, Failure) else "unexpected absent register"
        address = pending.address if pending is not None else 0
        logger.error("CV %d access failed at step %d: %s", address, session.step, reason)
        # The run is over; the failed operation must never be resumed.
        self._failed = RegisterAccessFailure(address, reason, step=session.step)
        self._script = None
        self._pending = None
        session.optional_pending = False
        raise self._failed

    def _resume(self, value: int | None) -> Action:
        if self._script is None:
            raise RuntimeError("no manufacturer procedure in progress")
        try:
            operation = self._script.send(value)
        except StopIteration as stop:
            if self.session.step == 3 and stop.value is None:
                logger.info(
                    "No product ID procedure for %s model %d",
                    self.session.manufacturer.name,
                    self.session.model_code,
                )
            return self._complete(stop.value)
        return self._issue(operation)

    def _issue(self, operation: Operation) -> Action:
        # A non-optional operation must never inherit a stale optional flag.
        self.session.optional_pending = isinstance(operation, IssueRead) and operation.optional
        self._pending = operation
        if operation.message:
            self._progress(operation.message)
        if isinstance(operation, IssueWrite):
            logger.debug("Issue write CV %d <- %d", operation.address, operation.value)
        else:
            logger.debug("Issue read CV %d (optional=%s)", operation.address, operation.optional)
        return operation

    def _complete(self, product_id: int | None) -> Complete:
        session = self.session
        session.product_id = product_id
        self._script = None
        self._pending = None
        self._result = Complete(session.manufacturer_code, session.model_code, product_id)
        self._progress("Done")
        logger.info(
            "Decoder returns mfgID:%s;modelID:%s;productID:%s",
            session.manufacturer_code,
            session.model_code,
            product_id,
        )
        if self._on_complete is not None:
            self._on_complete(self._result)
        return self._result

    def _progress(self, message: str) -> None:
        if self._on_progress is not None:
            self._on_progress(message)


async def identify(
    port: RegisterPort,
    on_progress: ProgressCallback | None = None,
) -> Complete:
    """
    Run a full identification against ``port`` and return the result.

    Raises RegisterAccessFailure if a non-optional operation fails.
    """
    machine = IdentifyDecoder(on_progress=on_progress)
    action = machine.start()
    while not isinstance(action, Complete):
        if isinstance(action, IssueWrite):
            outcome = await port.write_register(action.address, action.value)
        else:
            outcome = await port.read_register(action.address, optional=action.optional)
        action = machine.advance(outcome)
    return action
