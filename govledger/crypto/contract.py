"""
Contract Addresses & Call Encoding

Ethereum-compatible contract address computation and ABI call payloads.
Payloads are opaque to the governance core; only the ledger dispatcher
and callers building proposals look inside them.
"""

from typing import Any, List, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address
import rlp

from ..constants import SELECTOR_SIZE


def generate_contract_address(sender: str, nonce: int) -> str:
    """
    Generate contract address using CREATE opcode logic.

    Address = keccak256(rlp([sender, nonce]))[-20:]

    Args:
        sender: Deployer address (0x-prefixed)
        nonce: Deployer nonce

    Returns:
        Contract address (checksum format)
    """
    sender_bytes = bytes.fromhex(sender[2:] if sender.startswith('0x') else sender)
    hash_bytes = keccak(rlp.encode([sender_bytes, nonce]))
    return to_checksum_address('0x' + hash_bytes[-20:].hex())


def parse_argument_types(function_signature: str) -> List[str]:
    """
    "transfer(address,uint256)" -> ['address', 'uint256']
    """
    args_start = function_signature.index('(') + 1
    args_end = function_signature.rindex(')')
    arg_types_str = function_signature[args_start:args_end]
    if not arg_types_str:
        return []
    return [t.strip() for t in arg_types_str.split(',')]


def compute_function_selector(function_signature: str) -> bytes:
    """
    Compute the 4-byte function selector.

    Args:
        function_signature: Canonical signature, e.g. "transfer(address,uint256)"

    Returns:
        First 4 bytes of keccak256(signature)
    """
    return keccak(function_signature.encode('utf-8'))[:SELECTOR_SIZE]


def encode_function_call(function_signature: str, *args) -> bytes:
    """
    Encode function call data (selector + ABI-encoded arguments).

    Args:
        function_signature: Function signature
        *args: Function arguments

    Returns:
        Encoded call data
    """
    selector = compute_function_selector(function_signature)
    arg_types = parse_argument_types(function_signature)
    if len(arg_types) != len(args):
        raise ValueError(
            f"{function_signature} takes {len(arg_types)} arguments, got {len(args)}"
        )
    if not arg_types:
        return selector
    return selector + encode(arg_types, list(args))


def split_call_data(data: bytes) -> Tuple[bytes, bytes]:
    """
    Split call data into selector and encoded arguments.
    """
    if len(data) < SELECTOR_SIZE:
        raise ValueError("Call data too short for a function selector")
    return data[:SELECTOR_SIZE], data[SELECTOR_SIZE:]


def _normalize(abi_type: str, value: Any) -> Any:
    if abi_type == 'address':
        return to_checksum_address(value)
    if abi_type == 'address[]':
        return [to_checksum_address(v) for v in value]
    if abi_type.endswith('[]'):
        return list(value)
    return value


def decode_arguments(arg_types: Sequence[str], data: bytes) -> List[Any]:
    """
    Decode ABI-encoded arguments.

    Addresses come back in checksum form and dynamic arrays as lists so
    decoded values compare equal to the values a caller originally passed.
    """
    if not arg_types:
        return []
    values = decode(list(arg_types), data)
    return [_normalize(t, v) for t, v in zip(arg_types, values)]


def hash_operation_batch(
    targets: Sequence[str],
    values: Sequence[int],
    payloads: Sequence[bytes],
    eta: int,
) -> bytes:
    """
    Identity of a scheduled batch: keccak256(abi.encode(targets, values, payloads, eta)).

    A change in any field yields a different identity.
    """
    return keccak(encode(
        ['address[]', 'uint256[]', 'bytes[]', 'uint256'],
        [list(targets), list(values), [bytes(p) for p in payloads], eta],
    ))
