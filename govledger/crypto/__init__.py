"""
govledger Crypto Module

Address derivation and ABI call encoding.
"""

from .address import derive_account, is_zero_address, normalize_address
from .contract import (
    compute_function_selector,
    decode_arguments,
    encode_function_call,
    generate_contract_address,
    hash_operation_batch,
    parse_argument_types,
    split_call_data,
)

__all__ = [
    'derive_account',
    'is_zero_address',
    'normalize_address',
    'compute_function_selector',
    'decode_arguments',
    'encode_function_call',
    'generate_contract_address',
    'hash_operation_batch',
    'parse_argument_types',
    'split_call_data',
]
