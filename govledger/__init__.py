"""
govledger Governance Package

Token-weighted on-chain governance running on an in-process ledger.
Core imports are lazily loaded; for direct module access, import from
submodules:

    from govledger.contracts import Chain
    from govledger.governance import Governor, ProposalState
    from govledger.tokens import VotingToken, Reservoir
"""

__version__ = "1.0.0"

_LAZY = {
    'Chain': 'contracts',
    'Governor': 'governance',
    'ProposalState': 'governance',
    'TimelockController': 'governance',
    'VotingToken': 'tokens',
    'Reservoir': 'tokens',
    'ProxyAdmin': 'upgrades',
    'TransparentUpgradeableProxy': 'upgrades',
    'load_config': 'config',
}


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    module = _LAZY.get(name)
    if module is None:
        raise AttributeError(f"module 'govledger' has no attribute {name!r}")
    from importlib import import_module
    return getattr(import_module(f'.{module}', __name__), name)

__all__ = list(_LAZY)
