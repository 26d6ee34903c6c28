"""
Contract Base

Python-native contracts executed by a :class:`~govledger.contracts.chain.Chain`.

Entry points are declared with ``@external(signature)`` (state-changing)
or ``@view(signature)`` (read-only). The canonical ABI signature is what
payloads are encoded against, so any entry point can also be reached as an
opaque ``(target, value, payload)`` action.
"""

import copy
import functools
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..crypto.contract import (
    compute_function_selector,
    encode_function_call,
    parse_argument_types,
)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, eq=False)
class Event:
    """A structured notification emitted by a contract during a transaction."""
    name: str
    address: str
    args: Dict[str, Any]
    block_number: int
    timestamp: int

    def __getitem__(self, key: str) -> Any:
        return self.args[key]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "address": self.address,
            "args": {
                k: ("0x" + v.hex()) if isinstance(v, bytes) else v
                for k, v in self.args.items()
            },
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
        }


class EventLog(list):
    """
    Ordered list of events; indexing by name returns the first match.

        receipt.events["UpdateQuorumVotes"]["newQuorumVotes"]
    """

    def __getitem__(self, key):
        if isinstance(key, str):
            for event in self:
                if event.name == key:
                    return event
            raise KeyError(key)
        return super().__getitem__(key)

    def __contains__(self, key) -> bool:
        if isinstance(key, str):
            return any(event.name == key for event in self)
        return super().__contains__(key)

    def named(self, name: str) -> List[Event]:
        return [event for event in self if event.name == name]


# ══════════════════════════════════════════════════════════════════════
#  ENTRY-POINT DECORATORS
# ══════════════════════════════════════════════════════════════════════

def _annotate(fn: Callable, signature: str, mutating: bool, payable: bool) -> None:
    fn.abi_signature = signature
    fn.abi_types = parse_argument_types(signature)
    fn.mutating = mutating
    fn.payable = payable


def external(signature: str, *, payable: bool = False):
    """
    Declare a state-changing entry point.

    Called with ``sender=`` from outside the chain, the method runs as a
    top-level transaction and returns a receipt. Called from inside another
    contract's code, it runs as a nested call with ``msg_sender`` set to the
    calling contract and returns the method's own return value.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, sender: Optional[str] = None, value: int = 0):
            return self.chain.invoke(self, fn, args, sender=sender, value=value)

        _annotate(wrapper, signature, mutating=True, payable=payable)
        return wrapper
    return decorator


def view(signature: str):
    """
    Declare a read-only entry point.

    Views never open a transaction. From outside the chain they run in a
    static frame whose ``msg_sender`` is the zero address; from inside a
    call they see the calling contract as ``msg_sender``.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args):
            return self.chain.static_call(self, fn, args)

        _annotate(wrapper, signature, mutating=False, payable=False)
        return wrapper
    return decorator


# ══════════════════════════════════════════════════════════════════════
#  CONTRACT
# ══════════════════════════════════════════════════════════════════════

class Contract:
    """
    Base class of every on-chain component.

    Instances are created by ``Chain.deploy`` (or ``Cls.deploy(chain, ...)``),
    which binds ``chain`` and ``address`` before running ``__init__`` inside
    the deploying transaction. Every other attribute is contract storage and
    is snapshotted and restored as a unit when a transaction reverts, so
    storage must only reference other contracts by address.
    """

    _NON_STORAGE = frozenset({"chain", "address", "tx"})
    _abi: Dict[bytes, str] = {}

    chain: Any
    address: str

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        abi: Dict[bytes, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                signature = getattr(member, "abi_signature", None)
                if signature:
                    abi[compute_function_selector(signature)] = attr
        cls._abi = abi

    @classmethod
    def deploy(cls, chain, *args, sender: str, value: int = 0) -> "Contract":
        return chain.deploy(cls, *args, sender=sender, value=value)

    @classmethod
    def encode_input(cls, fn_name: str, *args) -> bytes:
        """Build the payload that invokes *fn_name* with *args*."""
        member = getattr(cls, fn_name, None)
        signature = getattr(member, "abi_signature", None)
        if signature is None:
            raise AttributeError(f"{cls.__name__}.{fn_name} is not an entry point")
        return encode_function_call(signature, *args)

    @classmethod
    def resolve_selector(cls, selector: bytes) -> Optional[Callable]:
        attr = cls._abi.get(selector)
        return getattr(cls, attr) if attr else None

    # ── Execution context ─────────────────────────────────────────────

    @property
    def msg_sender(self) -> str:
        return self.chain.msg_sender

    @property
    def msg_value(self) -> int:
        return self.chain.msg_value

    @property
    def block_number(self) -> int:
        return self.chain.block_number

    @property
    def now(self) -> int:
        return self.chain.timestamp

    def _emit(self, name: str, **args) -> None:
        self.chain.emit(self.address, name, args)

    # ── Storage snapshots ─────────────────────────────────────────────

    def _snapshot_storage(self) -> Dict[str, Any]:
        return copy.deepcopy(
            {k: v for k, v in vars(self).items() if k not in self._NON_STORAGE}
        )

    def _restore_storage(self, storage: Dict[str, Any]) -> None:
        for key in [k for k in vars(self) if k not in self._NON_STORAGE]:
            delattr(self, key)
        vars(self).update(copy.deepcopy(storage))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {getattr(self, 'address', '?')}>"
