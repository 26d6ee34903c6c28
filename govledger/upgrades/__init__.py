"""
govledger Upgrade Authority

Provides:
  - TransparentUpgradeableProxy / ProxyAdmin  (proxy.py)
"""

from .proxy import ProxyAdmin, ProxyError, TransparentUpgradeableProxy

__all__ = [
    "ProxyAdmin",
    "ProxyError",
    "TransparentUpgradeableProxy",
]
