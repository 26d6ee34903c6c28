"""
Ledger Environment

A single-process ledger that gives contracts what they expect from a
blockchain: a monotonic block index and timestamp, addresses, native
balances, ``msg.sender``, event logs, and atomic, totally ordered
transactions. Blocks are produced explicitly with :meth:`Chain.mine`.

Every top-level transaction snapshots all contract storage and native
balances first; if anything raises, the snapshot is restored and the
exception propagates unchanged, so a failed call leaves no trace.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from eth_utils import encode_hex, keccak

from ..constants import GENESIS_TIMESTAMP, ZERO_ADDRESS
from ..crypto.address import derive_account, normalize_address
from ..crypto.contract import (
    decode_arguments,
    generate_contract_address,
    split_call_data,
)
from ..exceptions import RevertError
from ..logger import get_logger
from .base import Contract, Event, EventLog

logger = get_logger(__name__)

DEFAULT_ACCOUNTS = 10


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class CallFailedError(RevertError):
    """Low-level call failure: unknown selector, bad arguments, missing value."""


# ══════════════════════════════════════════════════════════════════════
#  DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Frame:
    """One level of the call stack."""
    sender: str
    this: str
    value: int = 0


@dataclass
class TransactionReceipt:
    """Result of a committed top-level transaction."""
    tx_hash: str
    sender: str
    to: str
    function: str
    block_number: int
    timestamp: int
    events: EventLog = field(default_factory=EventLog)
    return_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "from": self.sender,
            "to": self.to,
            "function": self.function,
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
            "events": [e.to_dict() for e in self.events],
        }


# ══════════════════════════════════════════════════════════════════════
#  CHAIN
# ══════════════════════════════════════════════════════════════════════

class Chain:
    """
    Serialized ledger shared by every deployed contract.

    Transactions execute in the current block (``block_number``) at the
    current ``timestamp``; neither advances until :meth:`mine` or
    :meth:`sleep` is called.
    """

    def __init__(
        self,
        timestamp: int = GENESIS_TIMESTAMP,
        block_number: int = 1,
        block_time: int = 12,
        accounts: int = DEFAULT_ACCOUNTS,
    ):
        self.block_number = block_number
        self.timestamp = timestamp
        self.block_time = block_time
        self.accounts: List[str] = [derive_account(i) for i in range(accounts)]
        self.receipts: List[TransactionReceipt] = []

        self._contracts: Dict[str, Contract] = {}
        self._balances: Dict[str, int] = {}
        self._nonces: Dict[str, int] = {}
        self._frames: List[Frame] = []
        self._pending_events: Optional[EventLog] = None

    # ── Time ──────────────────────────────────────────────────────────

    def time(self) -> int:
        return self.timestamp

    def mine(self, blocks: int = 1, timestamp: Optional[int] = None) -> int:
        """
        Produce *blocks* empty blocks.

        The clock advances ``block_time`` seconds per block, or jumps to
        *timestamp* when given. Returns the new block number.
        """
        if blocks < 1:
            raise ValueError("Must mine at least one block")
        if timestamp is not None and timestamp < self.timestamp:
            raise ValueError(
                f"Timestamp {timestamp} is before current time {self.timestamp}"
            )
        self.block_number += blocks
        if timestamp is not None:
            self.timestamp = timestamp
        else:
            self.timestamp += blocks * self.block_time
        logger.debug(f"Mined {blocks} block(s) → #{self.block_number} @ {self.timestamp}")
        return self.block_number

    def sleep(self, seconds: int) -> int:
        """Advance the clock without producing a block."""
        if seconds < 0:
            raise ValueError("Cannot move time backwards")
        self.timestamp += seconds
        return self.timestamp

    # ── Accounts & native value ───────────────────────────────────────

    def balance(self, address: str) -> int:
        return self._balances.get(normalize_address(address), 0)

    def set_balance(self, address: str, amount: int) -> None:
        """Credit native value out of thin air (test faucet)."""
        if amount < 0:
            raise ValueError("Balance cannot be negative")
        self._balances[normalize_address(address)] = amount

    def nonce(self, address: str) -> int:
        return self._nonces.get(normalize_address(address), 0)

    def _move_value(self, sender: str, recipient: str, value: int) -> None:
        if value == 0:
            return
        if value < 0:
            raise CallFailedError("Value cannot be negative")
        available = self._balances.get(sender, 0)
        if available < value:
            raise CallFailedError(
                f"{sender} native balance {available} < value {value}"
            )
        self._balances[sender] = available - value
        self._balances[recipient] = self._balances.get(recipient, 0) + value

    # ── Contracts ─────────────────────────────────────────────────────

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self._contracts

    def at(self, address: str) -> Contract:
        """Return the contract deployed at *address*."""
        contract = self._contracts.get(normalize_address(address))
        if contract is None:
            raise CallFailedError(f"No contract at {address}")
        return contract

    def deploy(
        self,
        contract_cls: Type[Contract],
        *args,
        sender: Optional[str] = None,
        value: int = 0,
    ) -> Contract:
        """
        Create *contract_cls* at its CREATE address and run its constructor.

        Outside a transaction *sender* is required and the deployment is its
        own atomic transaction; inside one, the deploying contract is the sender.
        """
        if self._frames:
            if sender is not None:
                raise ValueError("sender= is only valid for top-level transactions")
            return self._create(self.this, contract_cls, args, value)

        origin = self._require_origin(sender)
        receipt = self._transact(
            origin,
            lambda: self._create(origin, contract_cls, args, value),
            to="",
            function=f"{contract_cls.__name__}.constructor",
        )
        contract = receipt.return_value
        receipt.to = contract.address
        contract.tx = receipt
        logger.info(f"Deployed {contract_cls.__name__} at {contract.address}")
        return contract

    def _create(self, deployer: str, contract_cls: Type[Contract], args, value: int) -> Contract:
        nonce = self._nonces.get(deployer, 0)
        address = generate_contract_address(deployer, nonce)
        self._nonces[deployer] = nonce + 1

        contract = contract_cls.__new__(contract_cls)
        contract.chain = self
        contract.address = address
        self._contracts[address] = contract
        self._run_frame(deployer, contract, contract_cls.__init__, args, value, payable=True)
        return contract

    # ── Call context ──────────────────────────────────────────────────

    def _top_frame(self) -> Frame:
        if not self._frames:
            raise RuntimeError("No call in progress")
        return self._frames[-1]

    @property
    def msg_sender(self) -> str:
        return self._top_frame().sender

    @property
    def msg_value(self) -> int:
        return self._top_frame().value

    @property
    def this(self) -> str:
        return self._top_frame().this

    @property
    def in_transaction(self) -> bool:
        return self._pending_events is not None

    def emit(self, address: str, name: str, args: Dict[str, Any]) -> None:
        if self._pending_events is None:
            raise RuntimeError(f"Event {name} emitted outside a transaction")
        self._pending_events.append(Event(
            name=name,
            address=address,
            args=dict(args),
            block_number=self.block_number,
            timestamp=self.timestamp,
        ))

    # ── Transactions ──────────────────────────────────────────────────

    def _require_origin(self, sender: Optional[str]) -> str:
        if sender is None:
            raise ValueError("A top-level transaction requires sender=")
        origin = normalize_address(sender)
        if origin in self._contracts:
            raise ValueError(f"Contract {origin} cannot originate a transaction")
        return origin

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "contracts": {
                address: contract._snapshot_storage()
                for address, contract in self._contracts.items()
            },
            "balances": dict(self._balances),
            "nonces": dict(self._nonces),
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        saved = snapshot["contracts"]
        for address in [a for a in self._contracts if a not in saved]:
            del self._contracts[address]
        for address, storage in saved.items():
            self._contracts[address]._restore_storage(storage)
        self._balances = snapshot["balances"]
        self._nonces = snapshot["nonces"]

    def _transact(self, origin: str, body: Callable[[], Any], to: str, function: str) -> TransactionReceipt:
        if self._pending_events is not None:
            raise RuntimeError("Transactions cannot be nested")

        nonce = self._nonces.get(origin, 0)
        tx_hash = encode_hex(keccak(
            bytes.fromhex(origin[2:]) + nonce.to_bytes(8, "big") + len(self.receipts).to_bytes(8, "big")
        ))
        snapshot = self._snapshot()
        self._pending_events = EventLog()
        try:
            result = body()
        except Exception as e:
            self._restore(snapshot)
            self._frames.clear()
            logger.warning(f"REVERT {function} from {origin}: {type(e).__name__}: {e}")
            raise
        finally:
            events = self._pending_events
            self._pending_events = None

        if not function.endswith(".constructor"):
            # Deployments already consumed the nonce for the CREATE address
            self._nonces[origin] = self._nonces.get(origin, 0) + 1

        receipt = TransactionReceipt(
            tx_hash=tx_hash,
            sender=origin,
            to=to,
            function=function,
            block_number=self.block_number,
            timestamp=self.timestamp,
            events=events,
            return_value=result,
        )
        self.receipts.append(receipt)
        return receipt

    def _run_frame(
        self,
        sender: str,
        contract: Contract,
        fn: Callable,
        args: Sequence[Any],
        value: int,
        payable: bool,
    ) -> Any:
        if value and not payable:
            raise CallFailedError(
                f"{type(contract).__name__}.{fn.__name__} does not accept value"
            )
        self._move_value(sender, contract.address, value)
        self._frames.append(Frame(sender=sender, this=contract.address, value=value))
        try:
            return fn(contract, *args)
        finally:
            self._frames.pop()

    def invoke(
        self,
        contract: Contract,
        fn: Callable,
        args: Sequence[Any],
        sender: Optional[str] = None,
        value: int = 0,
    ) -> Any:
        """
        Run entry point *fn* on *contract*.

        From outside the chain this is a transaction and returns a
        :class:`TransactionReceipt`; from inside a running call it is a
        nested call by the current contract and returns *fn*'s result.
        """
        payable = getattr(fn, "payable", False)
        if self._frames:
            if sender is not None:
                raise ValueError("sender= is only valid for top-level transactions")
            return self._run_frame(self.this, contract, fn, args, value, payable)

        origin = self._require_origin(sender)
        return self._transact(
            origin,
            lambda: self._run_frame(origin, contract, fn, args, value, payable),
            to=contract.address,
            function=f"{type(contract).__name__}.{fn.__name__}",
        )

    def static_call(self, contract: Contract, fn: Callable, args: Sequence[Any]) -> Any:
        """Run read-only entry point *fn* without opening a transaction."""
        if self._frames:
            return self._run_frame(self.this, contract, fn, args, 0, payable=False)
        self._frames.append(Frame(sender=ZERO_ADDRESS, this=contract.address))
        try:
            return fn(contract, *args)
        finally:
            self._frames.pop()

    def _dispatch(self, sender: str, target: str, value: int, payload: bytes) -> Any:
        contract = self._contracts.get(target)
        if contract is None:
            # Externally owned account: value moves, payload is ignored
            self._move_value(sender, target, value)
            return None

        contract_cls = type(contract)
        if not payload:
            receive = getattr(contract_cls, "receive", None)
            if receive is None:
                raise CallFailedError(f"{contract_cls.__name__} does not accept plain transfers")
            return self._run_frame(sender, contract, receive, (), value, payable=True)

        selector, data = split_call_data(payload)
        member = contract_cls.resolve_selector(selector)
        if member is None:
            fallback = getattr(contract_cls, "fallback", None)
            if fallback is None:
                raise CallFailedError(
                    f"{contract_cls.__name__} has no function with selector 0x{selector.hex()}"
                )
            return self._run_frame(sender, contract, fallback, (payload,), value, payable=True)

        try:
            args = decode_arguments(member.abi_types, data)
        except Exception as e:
            raise CallFailedError(f"Cannot decode arguments for {member.abi_signature}: {e}") from e
        fn = getattr(member, "__wrapped__", member)
        return self._run_frame(sender, contract, fn, args, value, payable=member.payable)

    def call(self, target: str, value: int = 0, payload: bytes = b"") -> Any:
        """
        Invoke an opaque action from the currently executing contract.

        This is the primitive behind every governance action: the caller
        never interprets *payload*; the target's ABI does.
        """
        return self._dispatch(self.this, normalize_address(target), value, bytes(payload))

    def send_transaction(
        self,
        sender: str,
        target: str,
        value: int = 0,
        payload: bytes = b"",
    ) -> TransactionReceipt:
        """Submit a raw ``(target, value, payload)`` transaction from an account."""
        origin = self._require_origin(sender)
        target = normalize_address(target)
        return self._transact(
            origin,
            lambda: self._dispatch(origin, target, value, bytes(payload)),
            to=target,
            function="0x" + bytes(payload)[:4].hex() if payload else "transfer",
        )

    def __repr__(self) -> str:
        return (
            f"<Chain block={self.block_number} time={self.timestamp} "
            f"contracts={len(self._contracts)}>"
        )
