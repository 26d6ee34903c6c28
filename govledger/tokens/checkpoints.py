"""
Checkpoint Ledger

Append-only, per-account history of voting power. Each account owns an
ordered sequence of ``(from_block, votes)`` checkpoints with strictly
increasing ``from_block``; historical power at block ``b`` is the votes of
the latest checkpoint with ``from_block <= b``, found by binary search.
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..constants import MAX_VOTES


@dataclass(frozen=True)
class Checkpoint:
    """Voting power recorded from a given block onwards."""
    from_block: int
    votes: int

    def to_dict(self) -> Dict[str, int]:
        return {"fromBlock": self.from_block, "votes": self.votes}


class CheckpointLedger:
    """
    Arena of checkpoints indexed by account.

    Blocks and votes are kept in parallel lists per account so lookups can
    bisect the block list directly.
    """

    def __init__(self):
        self._blocks: Dict[str, List[int]] = {}
        self._votes: Dict[str, List[int]] = {}

    def num_checkpoints(self, account: str) -> int:
        return len(self._blocks.get(account, ()))

    def checkpoint(self, account: str, index: int) -> Checkpoint:
        blocks = self._blocks.get(account, [])
        if not 0 <= index < len(blocks):
            raise IndexError(f"{account} has no checkpoint #{index}")
        return Checkpoint(blocks[index], self._votes[account][index])

    def latest(self, account: str) -> Optional[Checkpoint]:
        n = self.num_checkpoints(account)
        return self.checkpoint(account, n - 1) if n else None

    def current_votes(self, account: str) -> int:
        votes = self._votes.get(account)
        return votes[-1] if votes else 0

    def votes_at(self, account: str, block_number: int) -> int:
        """Votes of the latest checkpoint at or before *block_number*; zero if none."""
        blocks = self._blocks.get(account)
        if not blocks:
            return 0
        index = bisect_right(blocks, block_number) - 1
        if index < 0:
            return 0
        return self._votes[account][index]

    def write(self, account: str, block_number: int, new_votes: int) -> Tuple[int, int]:
        """
        Record *new_votes* for *account* from *block_number* onwards.

        A second write within the same block updates that block's checkpoint
        in place. Returns ``(old_votes, new_votes)``.
        """
        if not 0 <= new_votes <= MAX_VOTES:
            raise ValueError(f"Votes {new_votes} out of range for {account}")

        blocks = self._blocks.setdefault(account, [])
        votes = self._votes.setdefault(account, [])
        old_votes = votes[-1] if votes else 0

        if blocks and blocks[-1] == block_number:
            votes[-1] = new_votes
        elif blocks and blocks[-1] > block_number:
            raise ValueError(
                f"Checkpoint for {account} at block {block_number} precedes "
                f"existing checkpoint at block {blocks[-1]}"
            )
        else:
            blocks.append(block_number)
            votes.append(new_votes)
        return old_votes, new_votes

    def history(self, account: str) -> List[Checkpoint]:
        return [
            Checkpoint(b, v)
            for b, v in zip(self._blocks.get(account, []), self._votes.get(account, []))
        ]

    def to_dict(self) -> Dict[str, List[Dict[str, int]]]:
        return {
            account: [c.to_dict() for c in self.history(account)]
            for account in self._blocks
        }
