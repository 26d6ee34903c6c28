"""
Upgrade Authority

  - TransparentUpgradeableProxy: forwards every call to its current
    implementation; only its admin may read or redirect that target
  - ProxyAdmin: owner-controlled admin of any number of proxies

Ownership is a plain identity comparison against the stored owner, so when
the owner is the Governor every upgrade is itself a proposal.
"""

from typing import Any, Dict

from ..constants import ZERO_ADDRESS
from ..contracts.base import Contract, external, view
from ..crypto.address import is_zero_address, normalize_address
from ..exceptions import RevertError, UnauthorizedError
from ..logger import get_logger

logger = get_logger(__name__)


class ProxyError(RevertError):
    """Invalid proxy administration request."""


# ══════════════════════════════════════════════════════════════════════
#  PROXY
# ══════════════════════════════════════════════════════════════════════

class TransparentUpgradeableProxy(Contract):
    """
    Proxy whose admin functions are visible only to its admin.

    Any call from another account that does not hit an admin function falls
    through to the implementation contract. The admin itself may not fall
    through.
    """

    def __init__(self, implementation: str, admin: str):
        self._implementation = ZERO_ADDRESS
        self._admin = ZERO_ADDRESS
        self._set_implementation(normalize_address(implementation))
        self._set_admin(normalize_address(admin))

    def _only_admin(self) -> None:
        if self.msg_sender != self._admin:
            raise UnauthorizedError(f"{self.msg_sender} is not the proxy admin")

    def _set_implementation(self, implementation: str) -> None:
        if not self.chain.is_contract(implementation):
            raise ProxyError(f"New implementation {implementation} is not a contract")
        self._implementation = implementation
        self._emit("Upgraded", implementation=implementation)

    def _set_admin(self, new_admin: str) -> None:
        if is_zero_address(new_admin):
            raise ProxyError("New admin is the zero address")
        previous = self._admin
        self._admin = new_admin
        self._emit("AdminChanged", previousAdmin=previous, newAdmin=new_admin)

    @external("implementation()")
    def implementation(self) -> str:
        self._only_admin()
        return self._implementation

    @external("admin()")
    def admin(self) -> str:
        self._only_admin()
        return self._admin

    @external("upgradeTo(address)")
    def upgrade_to(self, new_implementation: str) -> None:
        self._only_admin()
        self._set_implementation(normalize_address(new_implementation))
        logger.info(f"Proxy {self.address} upgraded to {new_implementation}")

    @external("changeAdmin(address)")
    def change_admin(self, new_admin: str) -> None:
        self._only_admin()
        self._set_admin(normalize_address(new_admin))
        logger.info(f"Proxy {self.address} admin → {new_admin}")

    def fallback(self, payload: bytes) -> Any:
        if self.msg_sender == self._admin:
            raise UnauthorizedError("Admin cannot fall back to proxy target")
        return self.chain.call(self._implementation, self.msg_value, payload)

    def receive(self) -> None:
        if self.msg_sender == self._admin:
            raise UnauthorizedError("Admin cannot fall back to proxy target")
        self.chain.call(self._implementation, self.msg_value)


# ══════════════════════════════════════════════════════════════════════
#  PROXY ADMIN
# ══════════════════════════════════════════════════════════════════════

class ProxyAdmin(Contract):
    """Holds the admin role of proxies on behalf of a single owner."""

    def __init__(self, owner: str):
        self._owner = ZERO_ADDRESS
        self._transfer_ownership(normalize_address(owner))

    def _only_owner(self) -> None:
        if self.msg_sender != self._owner:
            raise UnauthorizedError(f"{self.msg_sender} is not the owner")

    def _transfer_ownership(self, new_owner: str) -> None:
        previous = self._owner
        self._owner = new_owner
        self._emit("OwnershipTransferred", previousOwner=previous, newOwner=new_owner)
        logger.info(f"ProxyAdmin {self.address} owner: {previous} → {new_owner}")

    def _proxy(self, proxy: str) -> TransparentUpgradeableProxy:
        return self.chain.at(proxy)

    @view("owner()")
    def owner(self) -> str:
        return self._owner

    @view("getProxyImplementation(address)")
    def get_proxy_implementation(self, proxy: str) -> str:
        return self._proxy(proxy).implementation()

    @view("getProxyAdmin(address)")
    def get_proxy_admin(self, proxy: str) -> str:
        return self._proxy(proxy).admin()

    @external("transferOwnership(address)")
    def transfer_ownership(self, new_owner: str) -> None:
        self._only_owner()
        new_owner = normalize_address(new_owner)
        if is_zero_address(new_owner):
            raise ProxyError("New owner is the zero address")
        self._transfer_ownership(new_owner)

    @external("upgrade(address,address)")
    def upgrade(self, proxy: str, implementation: str) -> None:
        self._only_owner()
        self._proxy(proxy).upgrade_to(implementation)

    @external("changeProxyAdmin(address,address)")
    def change_proxy_admin(self, proxy: str, new_admin: str) -> None:
        self._only_owner()
        self._proxy(proxy).change_admin(new_admin)

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "owner": self._owner}
