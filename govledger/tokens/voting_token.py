"""
Voting Token

Fungible token whose balances carry voting power:
  - ERC-20–style interface (transfer, approve, transferFrom, balanceOf)
  - One-shot initializer that mints the whole supply
  - Delegation: a holder's balance counts toward its delegate's votes
  - Checkpointed vote history for snapshot-based tallies
"""

from typing import Any, Dict, List, Sequence

from ..constants import (
    MAX_VOTES,
    TOKEN_DECIMALS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    ZERO_ADDRESS,
)
from ..contracts.base import Contract, external, view
from ..crypto.address import is_zero_address, normalize_address
from ..exceptions import AlreadyInitializedError, InvalidBlockError, RevertError
from ..logger import get_logger
from .checkpoints import Checkpoint, CheckpointLedger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(RevertError):
    """Base exception for token operations."""


class InsufficientBalanceError(TokenError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(TokenError):
    """Raised when spender allowance is too low."""


# ══════════════════════════════════════════════════════════════════════
#  VOTING TOKEN
# ══════════════════════════════════════════════════════════════════════

class VotingToken(Contract):
    """
    Governance token with delegated, checkpointed voting power.

    Voting power follows delegation, not raw balance: an account's balance
    adds to the votes of whoever it delegated to (nobody by default), and
    transfers move weight between the sender's and recipient's delegates.
    """

    def __init__(
        self,
        name: str = TOKEN_NAME,
        symbol: str = TOKEN_SYMBOL,
        decimals: int = TOKEN_DECIMALS,
    ):
        if not name:
            raise TokenError("Token name cannot be empty")
        if not symbol:
            raise TokenError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise TokenError(f"Decimals must be 0-18, got {decimals}")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.owner = ZERO_ADDRESS
        self.initialized = False

        self._total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[tuple, int] = {}  # (owner, spender)
        self._delegates: Dict[str, str] = {}
        self._checkpoints = CheckpointLedger()

    # ── Initialization ────────────────────────────────────────────────

    @external("initialize(address[],uint96[],address)")
    def initialize(
        self,
        initial_accounts: Sequence[str],
        initial_grants: Sequence[int],
        owner: str,
    ) -> int:
        """
        Mint the entire supply to *initial_accounts*. Callable once.

        *owner* is recorded for reference only; no operation checks it.
        """
        if self.initialized:
            raise AlreadyInitializedError(f"{self.symbol} is already initialized")
        if len(initial_accounts) != len(initial_grants):
            raise TokenError("Initial accounts and grants length mismatch")

        total = 0
        for account, amount in zip(initial_accounts, initial_grants):
            account = normalize_address(account)
            if is_zero_address(account):
                raise TokenError("Cannot grant tokens to the zero address")
            if amount < 0:
                raise TokenError("Grant amount cannot be negative")
            total += amount
            self._balances[account] = self._balances.get(account, 0) + amount
            self._emit("Transfer", **{"from": ZERO_ADDRESS, "to": account, "amount": amount})

        if total > MAX_VOTES:
            raise TokenError(f"Total supply {total} exceeds uint96")

        self._total_supply = total
        self.owner = normalize_address(owner)
        self.initialized = True
        logger.info(f"{self.symbol} initialized: supply={total}, holders={len(initial_accounts)}")
        return total

    # ── Read-only views ───────────────────────────────────────────────

    @view("totalSupply()")
    def total_supply(self) -> int:
        return self._total_supply

    @view("balanceOf(address)")
    def balance_of(self, account: str) -> int:
        return self._balances.get(normalize_address(account), 0)

    @view("allowance(address,address)")
    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    @view("delegates(address)")
    def delegates(self, account: str) -> str:
        return self._delegates.get(normalize_address(account), ZERO_ADDRESS)

    @view("getCurrentVotes(address)")
    def get_current_votes(self, account: str) -> int:
        return self._checkpoints.current_votes(normalize_address(account))

    @view("getPriorVotes(address,uint256)")
    def get_prior_votes(self, account: str, block_number: int) -> int:
        """
        Voting power of *account* as of the end of *block_number*.

        Only final blocks can be queried: *block_number* must be strictly
        below the current block, otherwise InvalidBlockError.
        """
        if block_number >= self.block_number:
            raise InvalidBlockError(
                f"Block {block_number} not yet determined (current {self.block_number})"
            )
        return self._checkpoints.votes_at(normalize_address(account), block_number)

    @view("numCheckpoints(address)")
    def num_checkpoints(self, account: str) -> int:
        return self._checkpoints.num_checkpoints(normalize_address(account))

    @view("checkpoints(address,uint32)")
    def checkpoints(self, account: str, index: int) -> Checkpoint:
        return self._checkpoints.checkpoint(normalize_address(account), index)

    def checkpoint_history(self, account: str) -> List[Checkpoint]:
        return self._checkpoints.history(normalize_address(account))

    # ── ERC-20 operations ─────────────────────────────────────────────

    @external("approve(address,uint256)")
    def approve(self, spender: str, amount: int) -> bool:
        if amount < 0:
            raise TokenError("Allowance amount cannot be negative")
        owner = self.msg_sender
        spender = normalize_address(spender)
        self._allowances[(owner, spender)] = amount
        self._emit("Approval", owner=owner, spender=spender, amount=amount)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return True

    @external("transfer(address,uint256)")
    def transfer(self, recipient: str, amount: int) -> bool:
        self._transfer_tokens(self.msg_sender, normalize_address(recipient), amount)
        return True

    @external("transferFrom(address,address,uint256)")
    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        spender = self.msg_sender
        sender = normalize_address(sender)
        allowed = self._allowances.get((sender, spender), 0)
        if spender != sender:
            if allowed < amount:
                raise InsufficientAllowanceError(
                    f"Allowance {allowed} < transfer amount {amount}"
                )
            self._allowances[(sender, spender)] = allowed - amount
        self._transfer_tokens(sender, normalize_address(recipient), amount)
        return True

    def _transfer_tokens(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TokenError("Transfer amount cannot be negative")
        if is_zero_address(recipient):
            raise TokenError("Cannot transfer to the zero address")

        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {balance} < transfer amount {amount}"
            )

        self._balances[sender] = balance - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        self._emit("Transfer", **{"from": sender, "to": recipient, "amount": amount})
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")

        self._move_delegates(self.delegates(sender), self.delegates(recipient), amount)

    # ── Delegation ────────────────────────────────────────────────────

    @external("delegate(address)")
    def delegate(self, delegatee: str) -> None:
        """Direct the caller's whole balance toward *delegatee*'s votes."""
        delegator = self.msg_sender
        delegatee = normalize_address(delegatee)
        current = self.delegates(delegator)
        self._delegates[delegator] = delegatee

        self._emit(
            "DelegateChanged",
            delegator=delegator,
            fromDelegate=current,
            toDelegate=delegatee,
        )
        logger.info(f"Delegation: {delegator} → {delegatee} (was {current})")
        self._move_delegates(current, delegatee, self._balances.get(delegator, 0))

    def _move_delegates(self, src: str, dst: str, amount: int) -> None:
        if src == dst or amount <= 0:
            return
        if not is_zero_address(src):
            old = self._checkpoints.current_votes(src)
            self._write_checkpoint(src, old - amount)
        if not is_zero_address(dst):
            old = self._checkpoints.current_votes(dst)
            self._write_checkpoint(dst, old + amount)

    def _write_checkpoint(self, delegatee: str, new_votes: int) -> None:
        try:
            old_votes, new_votes = self._checkpoints.write(delegatee, self.block_number, new_votes)
        except ValueError as e:
            raise TokenError(str(e)) from e
        self._emit(
            "DelegateVotesChanged",
            delegate=delegatee,
            previousBalance=old_votes,
            newBalance=new_votes,
        )
        logger.debug(f"Votes: {delegatee} {old_votes} → {new_votes} @ block {self.block_number}")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": self._total_supply,
            "owner": self.owner,
            "initialized": self.initialized,
            "holders": len([b for b in self._balances.values() if b > 0]),
        }

    def __repr__(self) -> str:
        return f"<VotingToken {self.symbol} supply={self._total_supply}>"
