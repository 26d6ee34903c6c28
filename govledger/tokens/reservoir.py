"""
Reservoir

Constant-rate token emission: streams the reservoir's token balance to a
fixed target at ``drip_rate`` tokens per second since the last drip.
"""

from typing import Any, Dict

from ..contracts.base import Contract, external, view
from ..crypto.address import normalize_address
from ..exceptions import RevertError
from ..logger import get_logger

logger = get_logger(__name__)


class ReservoirEmptyError(RevertError):
    """Drip attempted with nothing left to emit."""


class Reservoir(Contract):
    """
    Holds a token balance and releases it linearly over time.

    Total emission depends only on elapsed time, not on how often
    ``drip`` is called.
    """

    def __init__(self, drip_rate: int, token: str, target: str):
        if drip_rate <= 0:
            raise RevertError("Drip rate must be positive")
        self.drip_rate = drip_rate
        self.token = normalize_address(token)
        self.target = normalize_address(target)
        self.drip_start = self.now
        self.last_drip_time = self.now

    @view("dripRate()")
    def get_drip_rate(self) -> int:
        return self.drip_rate

    @view("DRIP_START()")
    def get_drip_start(self) -> int:
        return self.drip_start

    @view("lastDripTime()")
    def get_last_drip_time(self) -> int:
        return self.last_drip_time

    def balance(self) -> int:
        return self.chain.at(self.token).balance_of(self.address)

    @external("drip()")
    def drip(self) -> int:
        """Transfer everything accrued since the last drip. Returns the amount."""
        balance = self.balance()
        if balance == 0:
            raise ReservoirEmptyError("Reservoir empty")

        elapsed = self.now - max(self.last_drip_time, self.drip_start)
        if elapsed <= 0:
            return 0

        amount = min(elapsed * self.drip_rate, balance)
        self.chain.at(self.token).transfer(self.target, amount)
        self.last_drip_time = self.now

        self._emit("Dripped", amount=amount)
        logger.info(f"Dripped {amount} to {self.target} ({elapsed}s elapsed, {balance - amount} left)")
        return amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "token": self.token,
            "target": self.target,
            "dripRate": self.drip_rate,
            "dripStart": self.drip_start,
            "lastDripTime": self.last_drip_time,
        }
