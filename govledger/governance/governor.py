"""
Governor

Orchestrates the proposal lifecycle:

    propose → Pending → Active → Succeeded | Defeated
            → Queued (scheduled in the timelock) → Executed
    cancel  → Canceled (from any state but Executed)

Votes are weighed from the voting token's checkpoints at each proposal's
snapshot block. Approved actions run through the Governor's own timelock,
which is also the only caller allowed to change governance parameters.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..contracts.base import external, view
from ..crypto.address import normalize_address
from ..exceptions import InvalidStateError, UnauthorizedError
from ..logger import get_logger
from .execution import (
    ProposalNotQueuedError,
    TimelockController,
    TimelockNotReadyError,
    UnknownOperationError,
)
from .proposals import (
    GovernanceError,
    PayloadMismatchError,
    Proposal,
    ProposalState,
    ThresholdNotMetError,
    normalize_actions,
)
from .voting import VoteReceipt, record_vote, tally_outcome

logger = get_logger(__name__)


class Governor(TimelockController):
    """
    Token-weighted governor that is its own timelock.

    Args:
        quorum_votes:          Minimum for-votes for a proposal to pass
        proposal_threshold:    Voting power needed to propose
        voting_delay_blocks:   Blocks between proposal and snapshot
        voting_period_blocks:  Blocks during which votes are accepted
        token:                 Voting token address
        guardian:              Account that may cancel any unexecuted proposal
        min_delay:             Seconds between queueing and execution
    """

    def __init__(
        self,
        quorum_votes: int,
        proposal_threshold: int,
        voting_delay_blocks: int,
        voting_period_blocks: int,
        token: str,
        guardian: str,
        min_delay: int,
    ):
        super().__init__(min_delay)
        if quorum_votes < 0 or proposal_threshold < 0:
            raise GovernanceError("Quorum and proposal threshold cannot be negative")
        self._check_voting_delay(voting_delay_blocks)
        self._check_voting_period(voting_period_blocks)

        self.token = normalize_address(token)
        self.guardian = normalize_address(guardian)
        self._quorum_votes = quorum_votes
        self._proposal_threshold = proposal_threshold
        self._voting_delay_blocks = voting_delay_blocks
        self._voting_period_blocks = voting_period_blocks

        self.proposal_count = 0
        self._proposals: Dict[int, Proposal] = {}
        self._receipts: Dict[int, Dict[str, VoteReceipt]] = {}

        logger.info(
            f"Governor configured: quorum={quorum_votes}, threshold={proposal_threshold}, "
            f"delay={voting_delay_blocks} blocks, period={voting_period_blocks} blocks, "
            f"timelock={min_delay}s"
        )

    @staticmethod
    def _check_voting_delay(blocks: int) -> None:
        if blocks < 0:
            raise GovernanceError(f"Voting delay cannot be negative: {blocks}")

    @staticmethod
    def _check_voting_period(blocks: int) -> None:
        if blocks < 1:
            raise GovernanceError(f"Voting period must be at least one block: {blocks}")

    def _token(self):
        return self.chain.at(self.token)

    def _only_governance(self, parameter: str) -> None:
        if self.msg_sender != self.address:
            raise UnauthorizedError(f"{parameter} can only be updated by governance")

    def _get_proposal(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise InvalidStateError(f"Unknown proposal #{proposal_id}")
        return proposal

    def _check_actions(self, proposal: Proposal, targets, values, payloads) -> None:
        if not proposal.matches(targets, values, payloads):
            raise PayloadMismatchError(f"Actions do not match Proposal #{proposal.id}")

    # ── Parameters ────────────────────────────────────────────────────

    @view("quorumVotes()")
    def quorum_votes(self) -> int:
        return self._quorum_votes

    @view("proposalThreshold()")
    def proposal_threshold(self) -> int:
        return self._proposal_threshold

    @view("votingDelayBlocks()")
    def voting_delay_blocks(self) -> int:
        return self._voting_delay_blocks

    @view("votingPeriodBlocks()")
    def voting_period_blocks(self) -> int:
        return self._voting_period_blocks

    @external("updateQuorumVotes(uint96)")
    def update_quorum_votes(self, new_quorum_votes: int) -> None:
        self._only_governance("Quorum")
        old = self._quorum_votes
        self._quorum_votes = new_quorum_votes
        self._emit("UpdateQuorumVotes", oldQuorumVotes=old, newQuorumVotes=new_quorum_votes)
        logger.info(f"Quorum votes: {old} → {new_quorum_votes}")

    @external("updateProposalThreshold(uint96)")
    def update_proposal_threshold(self, new_proposal_threshold: int) -> None:
        self._only_governance("Proposal threshold")
        old = self._proposal_threshold
        self._proposal_threshold = new_proposal_threshold
        self._emit(
            "UpdateProposalThreshold",
            oldProposalThreshold=old,
            newProposalThreshold=new_proposal_threshold,
        )
        logger.info(f"Proposal threshold: {old} → {new_proposal_threshold}")

    @external("updateVotingDelayBlocks(uint32)")
    def update_voting_delay_blocks(self, new_voting_delay_blocks: int) -> None:
        self._only_governance("Voting delay")
        self._check_voting_delay(new_voting_delay_blocks)
        old = self._voting_delay_blocks
        self._voting_delay_blocks = new_voting_delay_blocks
        self._emit(
            "UpdateVotingDelayBlocks",
            oldVotingDelayBlocks=old,
            newVotingDelayBlocks=new_voting_delay_blocks,
        )
        logger.info(f"Voting delay: {old} → {new_voting_delay_blocks} blocks")

    @external("updateVotingPeriodBlocks(uint32)")
    def update_voting_period_blocks(self, new_voting_period_blocks: int) -> None:
        self._only_governance("Voting period")
        self._check_voting_period(new_voting_period_blocks)
        old = self._voting_period_blocks
        self._voting_period_blocks = new_voting_period_blocks
        self._emit(
            "UpdateVotingPeriodBlocks",
            oldVotingPeriodBlocks=old,
            newVotingPeriodBlocks=new_voting_period_blocks,
        )
        logger.info(f"Voting period: {old} → {new_voting_period_blocks} blocks")

    # ── Proposal views ────────────────────────────────────────────────

    @view("proposals(uint256)")
    def proposals(self, proposal_id: int) -> Proposal:
        return self._get_proposal(proposal_id)

    @view("getActions(uint256)")
    def get_actions(self, proposal_id: int) -> tuple:
        return self._get_proposal(proposal_id).actions

    @view("getReceipt(uint256,address)")
    def get_receipt(self, proposal_id: int, voter: str) -> Optional[VoteReceipt]:
        self._get_proposal(proposal_id)
        return self._receipts.get(proposal_id, {}).get(normalize_address(voter))

    @view("state(uint256)")
    def state(self, proposal_id: int) -> ProposalState:
        return self._state(self._get_proposal(proposal_id))

    def _state(self, proposal: Proposal) -> ProposalState:
        if proposal.canceled:
            return ProposalState.Canceled
        if proposal.executed:
            return ProposalState.Executed
        if self.block_number <= proposal.start_block:
            return ProposalState.Pending
        if self.block_number <= proposal.end_block:
            return ProposalState.Active
        # Outcome is fixed once queued; later parameter changes do not re-tally it.
        if proposal.eta is not None:
            return ProposalState.Queued
        if not tally_outcome(
            proposal.for_votes,
            proposal.against_votes,
            self._quorum_votes,
            proposal.proposer_votes,
            self._proposal_threshold,
        ):
            return ProposalState.Defeated
        return ProposalState.Succeeded

    # ── Lifecycle ─────────────────────────────────────────────────────

    @external("propose(address[],uint256[],bytes[])")
    def propose(
        self,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
    ) -> int:
        """Submit a batch of actions for a vote. Returns the new proposal id."""
        targets, values, payloads = normalize_actions(targets, values, payloads)
        proposer = self.msg_sender
        proposer_votes = self._token().get_prior_votes(proposer, self.block_number - 1)
        if proposer_votes < self._proposal_threshold:
            raise ThresholdNotMetError(
                f"{proposer} has {proposer_votes} votes, threshold is {self._proposal_threshold}"
            )

        start_block = self.block_number + self._voting_delay_blocks
        end_block = start_block + self._voting_period_blocks
        self.proposal_count += 1
        proposal = Proposal(
            id=self.proposal_count,
            proposer=proposer,
            targets=targets,
            values=values,
            payloads=payloads,
            start_block=start_block,
            end_block=end_block,
            proposer_votes=proposer_votes,
        )
        self._proposals[proposal.id] = proposal
        self._receipts[proposal.id] = {}

        self._emit(
            "ProposalCreated",
            id=proposal.id,
            proposer=proposer,
            targets=list(targets),
            values=list(values),
            payloads=list(payloads),
            startBlock=start_block,
            endBlock=end_block,
        )
        logger.info(
            f"Proposal #{proposal.id} created by {proposer}: {len(targets)} action(s), "
            f"voting blocks {start_block + 1}-{end_block}"
        )
        return proposal.id

    @external("castVote(uint256,bool)")
    def cast_vote(self, proposal_id: int, support: bool) -> int:
        """Vote with the caller's power at the snapshot block. Returns the weight."""
        proposal = self._get_proposal(proposal_id)
        state = self._state(proposal)
        if state != ProposalState.Active:
            raise InvalidStateError(f"Proposal #{proposal_id} is {state.name}, voting is closed")

        voter = self.msg_sender
        votes = self._token().get_prior_votes(voter, proposal.start_block)
        receipt = record_vote(
            proposal, self._receipts[proposal_id], voter, support, votes, self.block_number
        )
        self._emit(
            "VoteCast",
            voter=voter,
            proposalId=proposal_id,
            support=receipt.support,
            votes=votes,
        )
        return votes

    @external("queueProposal(uint256,address[],uint256[],bytes[])")
    def queue_proposal(
        self,
        proposal_id: int,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
    ) -> bytes:
        """Schedule a succeeded proposal's actions for ``now + min_delay``."""
        proposal = self._get_proposal(proposal_id)
        self._check_actions(proposal, targets, values, payloads)
        state = self._state(proposal)
        if state != ProposalState.Succeeded:
            raise InvalidStateError(f"Proposal #{proposal_id} is {state.name}, cannot queue")

        eta = self.now + self.min_delay
        operation_id = self._schedule(proposal.targets, proposal.values, proposal.payloads, eta)
        proposal.eta = eta
        proposal.operation_id = operation_id

        self._emit("ProposalQueued", id=proposal_id, eta=eta)
        logger.info(f"Proposal #{proposal_id} Queued, eta={eta}")
        return operation_id

    @external("executeProposal(uint256,address[],uint256[],bytes[])", payable=True)
    def execute_proposal(
        self,
        proposal_id: int,
        targets: Sequence[str],
        values: Sequence[int],
        payloads: Sequence[bytes],
    ) -> List[Any]:
        """Run a queued proposal's actions once its eta has passed. Anyone may call."""
        proposal = self._get_proposal(proposal_id)
        self._check_actions(proposal, targets, values, payloads)
        state = self._state(proposal)
        if state != ProposalState.Queued:
            raise ProposalNotQueuedError(f"Proposal #{proposal_id} is {state.name}, cannot execute")
        if not self.is_operation(proposal.operation_id):
            raise UnknownOperationError(f"Proposal #{proposal_id} has no scheduled operation")
        if self.now < proposal.eta:
            raise TimelockNotReadyError(
                f"Proposal #{proposal_id} eta {proposal.eta} not reached (now {self.now})"
            )

        proposal.executed = True
        results = self._execute(proposal.targets, proposal.values, proposal.payloads, proposal.eta)

        self._emit("ProposalExecuted", id=proposal_id)
        logger.info(f"Proposal #{proposal_id} Executed")
        return results

    @external("cancelProposal(uint256)")
    def cancel_proposal(self, proposal_id: int) -> None:
        """
        Cancel a proposal in any state except Executed.

        Allowed for the guardian and the proposer, and for anyone once the
        proposer's voting power has dropped below the proposal threshold.
        """
        proposal = self._get_proposal(proposal_id)
        state = self._state(proposal)
        if state == ProposalState.Executed:
            raise InvalidStateError(f"Proposal #{proposal_id} is Executed, cannot cancel")

        caller = self.msg_sender
        if caller not in (self.guardian, proposal.proposer):
            proposer_votes = self._token().get_prior_votes(proposal.proposer, self.block_number - 1)
            if proposer_votes >= self._proposal_threshold:
                raise UnauthorizedError(f"{caller} may not cancel Proposal #{proposal_id}")

        proposal.canceled = True
        # Only a Queued proposal owns its operation; an identical twin may hold the same id.
        if state == ProposalState.Queued and self.is_operation(proposal.operation_id):
            self._cancel(proposal.operation_id)

        self._emit("ProposalCanceled", id=proposal_id)
        logger.info(f"Proposal #{proposal_id} Canceled by {caller}")

    # ── Native value ──────────────────────────────────────────────────

    def receive(self) -> None:
        logger.debug(f"Governor received {self.msg_value} from {self.msg_sender}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "token": self.token,
            "guardian": self.guardian,
            "quorumVotes": self._quorum_votes,
            "proposalThreshold": self._proposal_threshold,
            "votingDelayBlocks": self._voting_delay_blocks,
            "votingPeriodBlocks": self._voting_period_blocks,
            "minDelay": self.min_delay,
            "proposalCount": self.proposal_count,
        }
