"""
govledger Address Module

Ethereum-style 20-byte addresses with EIP-55 checksums. Externally owned
accounts for a local chain are derived deterministically from an index.
"""

from eth_utils import is_address, keccak, to_checksum_address

from ..constants import ACCOUNT_SEED, ZERO_ADDRESS


def derive_account(index: int) -> str:
    """
    Derive the address of the *index*-th local account.

    Address = keccak256(seed || index)[-20:]
    """
    if index < 0:
        raise ValueError(f"Account index must be non-negative, got {index}")
    digest = keccak(ACCOUNT_SEED + index.to_bytes(8, 'big'))
    return to_checksum_address('0x' + digest[-20:].hex())


def normalize_address(address: str) -> str:
    """Validate *address* and return its checksum form."""
    if not isinstance(address, str) or not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero_address(address: str) -> bool:
    return address.lower() == ZERO_ADDRESS
