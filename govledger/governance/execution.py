"""
Time-Lock Execution Engine

Implements:
  - ScheduledOperation: a batch of actions identified by the hash of
    (targets, values, payloads, eta)
  - TimelockController: schedule / cancel / execute with a minimum delay
  - Generic action invocation: each action is dispatched as an opaque
    (target, value, payload) call, never interpreted here
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..contracts.base import Contract, external, view
from ..crypto.address import normalize_address
from ..crypto.contract import hash_operation_batch
from ..exceptions import ExecutionRevertedError, InvalidStateError, UnauthorizedError
from ..logger import get_logger
from .proposals import GovernanceError, normalize_actions

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TimelockError(GovernanceError):
    """Timelock-specific errors."""


class DelayTooShortError(TimelockError):
    """Scheduled eta is earlier than now + min delay."""


class OperationNotReadyError(TimelockError):
    """Execution attempted before the operation's eta."""


class TimelockNotReadyError(OperationNotReadyError):
    """Proposal execution attempted before its eta."""


class UnknownOperationError(TimelockError):
    """No scheduled operation has the given identity."""


class AlreadyQueuedError(TimelockError):
    """An identical operation is already scheduled."""


class ProposalNotQueuedError(UnknownOperationError, InvalidStateError):
    """Proposal execution attempted while the proposal holds no scheduled operation."""


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ScheduledOperation:
    """
    A queued batch awaiting execution.

    Attributes:
        operation_id:  keccak256 of the ABI-encoded batch and eta
        targets:       Destination of each action
        values:        Native value of each action
        payloads:      Opaque call data of each action
        eta:           Earliest execution timestamp
        scheduled_at:  Timestamp when scheduled
    """
    operation_id: bytes
    targets: tuple
    values: tuple
    payloads: tuple
    eta: int
    scheduled_at: int

    def is_ready(self, now: int) -> bool:
        return now >= self.eta

    def time_remaining(self, now: int) -> int:
        """Seconds until eta (0 if already past)."""
        return max(0, self.eta - now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operationId": "0x" + self.operation_id.hex(),
            "targets": list(self.targets),
            "values": list(self.values),
            "payloads": ["0x" + p.hex() for p in self.payloads],
            "eta": self.eta,
            "scheduledAt": self.scheduled_at,
        }


class TimelockController(Contract):
    """
    Queue of action batches that may only run after a minimum delay.

    Mutations are restricted to the controller itself (an executed batch
    targeting its own address) and an optional proposer account. The
    Governor never sets a proposer; it only schedules through its own
    proposal pipeline.
    """

    def __init__(self, min_delay: int, proposer: Optional[str] = None):
        if min_delay < 0:
            raise TimelockError(f"Minimum delay cannot be negative: {min_delay}")
        self.min_delay = min_delay
        self.proposer = normalize_address(proposer) if proposer else None
        self._operations: Dict[bytes, ScheduledOperation] = {}

    def _only_authorized(self) -> None:
        if self.msg_sender not in (self.address, self.proposer):
            raise UnauthorizedError(f"{self.msg_sender} may not manage the timelock")

    # ── Views ─────────────────────────────────────────────────────────

    @view("getMinDelay()")
    def get_min_delay(self) -> int:
        return self.min_delay

    @view("isOperation(bytes32)")
    def is_operation(self, operation_id: bytes) -> bool:
        return bytes(operation_id) in self._operations

    @view("isOperationReady(bytes32)")
    def is_operation_ready(self, operation_id: bytes) -> bool:
        operation = self._operations.get(bytes(operation_id))
        return operation is not None and operation.is_ready(self.now)

    @view("getTimestamp(bytes32)")
    def get_timestamp(self, operation_id: bytes) -> int:
        """Eta of a scheduled operation, zero if unknown."""
        operation = self._operations.get(bytes(operation_id))
        return operation.eta if operation else 0

    @view("hashOperationBatch(address[],uint256[],bytes[],uint256)")
    def hash_operation_batch(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
        eta: int,
    ) -> bytes:
        targets, values, payloads = normalize_actions(targets, values, payloads)
        return hash_operation_batch(targets, values, payloads, eta)

    def get_operation(self, operation_id: bytes) -> Optional[ScheduledOperation]:
        return self._operations.get(bytes(operation_id))

    def pending_operations(self) -> List[ScheduledOperation]:
        return sorted(self._operations.values(), key=lambda op: op.eta)

    # ── Entry points ──────────────────────────────────────────────────

    @external("schedule(address[],uint256[],bytes[],uint256)")
    def schedule(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
        eta: int,
    ) -> bytes:
        self._only_authorized()
        return self._schedule(targets, values, payloads, eta)

    @external("cancel(bytes32)")
    def cancel(self, operation_id: bytes) -> None:
        self._only_authorized()
        self._cancel(bytes(operation_id))

    @external("execute(address[],uint256[],bytes[],uint256)", payable=True)
    def execute(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
        eta: int,
    ) -> List[Any]:
        self._only_authorized()
        return self._execute(targets, values, payloads, eta)

    @external("updateDelay(uint256)")
    def update_delay(self, new_delay: int) -> None:
        if self.msg_sender != self.address:
            raise UnauthorizedError("Minimum delay can only be changed through the timelock")
        if new_delay < 0:
            raise TimelockError(f"Minimum delay cannot be negative: {new_delay}")
        old_delay = self.min_delay
        self.min_delay = new_delay
        self._emit("MinDelayChange", oldDuration=old_delay, newDuration=new_delay)
        logger.info(f"Min delay: {old_delay}s → {new_delay}s")

    # ── Internals ─────────────────────────────────────────────────────

    def _schedule(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
        eta: int,
    ) -> bytes:
        targets, values, payloads = normalize_actions(targets, values, payloads)
        if eta < self.now + self.min_delay:
            raise DelayTooShortError(
                f"Eta {eta} < now {self.now} + min delay {self.min_delay}"
            )

        operation_id = hash_operation_batch(targets, values, payloads, eta)
        if operation_id in self._operations:
            raise AlreadyQueuedError(f"Operation 0x{operation_id.hex()} already scheduled")

        self._operations[operation_id] = ScheduledOperation(
            operation_id=operation_id,
            targets=tuple(targets),
            values=tuple(values),
            payloads=tuple(payloads),
            eta=eta,
            scheduled_at=self.now,
        )
        for index, (target, value, payload) in enumerate(zip(targets, values, payloads)):
            self._emit(
                "CallScheduled",
                id=operation_id,
                index=index,
                target=target,
                value=value,
                data=payload,
                eta=eta,
            )
        logger.info(f"Scheduled 0x{operation_id.hex()[:16]}… ({len(targets)} action(s), eta={eta})")
        return operation_id

    def _cancel(self, operation_id: bytes) -> None:
        if operation_id not in self._operations:
            raise UnknownOperationError(f"Operation 0x{operation_id.hex()} is not scheduled")
        del self._operations[operation_id]
        self._emit("Cancelled", id=operation_id)
        logger.info(f"Cancelled 0x{operation_id.hex()[:16]}…")

    def _execute(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
        eta: int,
    ) -> List[Any]:
        targets, values, payloads = normalize_actions(targets, values, payloads)
        operation_id = hash_operation_batch(targets, values, payloads, eta)
        operation = self._operations.get(operation_id)
        if operation is None:
            raise UnknownOperationError(f"Operation 0x{operation_id.hex()} is not scheduled")
        if not operation.is_ready(self.now):
            raise OperationNotReadyError(
                f"Operation 0x{operation_id.hex()} not ready: "
                f"{operation.time_remaining(self.now)}s remaining"
            )

        # Consumed before the actions run
        del self._operations[operation_id]

        results = []
        for index, (target, value, payload) in enumerate(zip(targets, values, payloads)):
            try:
                results.append(self.chain.call(target, value, payload))
            except Exception as e:
                raise ExecutionRevertedError(
                    f"Action {index} to {target} failed: {type(e).__name__}: {e}"
                ) from e
            self._emit(
                "CallExecuted",
                id=operation_id,
                index=index,
                target=target,
                value=value,
                data=payload,
            )
        logger.info(f"Executed 0x{operation_id.hex()[:16]}… ({len(targets)} action(s))")
        return results
