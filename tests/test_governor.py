"""
Governor Test Suite

Coverage:
  - propose: threshold, action validation, snapshot blocks
  - State machine: Pending → Active → Succeeded / Defeated → Queued → Executed,
    Canceled from any non-executed state
  - Snapshot voting, double-vote protection
  - queue / execute guards: payload match, timelock eta, exactly-once,
    identical proposals sharing one operation id
  - cancel roles: proposer, guardian, anyone once proposer is below threshold
  - Parameter updates only through the governor itself
"""

import pytest

from govledger.contracts import Contract, external
from govledger.exceptions import (
    ExecutionRevertedError,
    InvalidStateError,
    RevertError,
    UnauthorizedError,
)
from govledger.governance import (
    AlreadyQueuedError,
    AlreadyVotedError,
    Governor,
    InvalidProposalError,
    PayloadMismatchError,
    ProposalState,
    ThresholdNotMetError,
    TimelockNotReadyError,
    UnknownOperationError,
    tally_outcome,
)
from govledger.tokens import VotingToken


QUORUM = 100
THRESHOLD = 10
VOTING_DELAY = 1
VOTING_PERIOD = 5
DELAY = 86400


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

class Bomb(Contract):
    @external("explode()")
    def explode(self) -> None:
        raise RevertError("target exploded")


@pytest.fixture
def setup(chain, accounts):
    """Token holders: accounts[1]=50, accounts[2]=50, accounts[3]=30 (all self-delegated)."""
    token = VotingToken.deploy(chain, sender=accounts[0])
    governor = Governor.deploy(
        chain, QUORUM, THRESHOLD, VOTING_DELAY, VOTING_PERIOD,
        token.address, accounts[9], DELAY,
        sender=accounts[0],
    )
    token.initialize(
        [accounts[1], accounts[2], accounts[3], governor.address],
        [50, 50, 30, 1000],
        accounts[0],
        sender=accounts[0],
    )
    for holder in accounts[1:4]:
        token.delegate(holder, sender=holder)
    chain.mine()
    return token, governor


def grant(token, recipient, amount=10):
    """A single action moving governor-held tokens to *recipient*."""
    return [token.address], [0], [VotingToken.encode_input("transfer", recipient, amount)]


def open_voting(chain, governor):
    chain.mine(governor.voting_delay_blocks() + 1)


def close_voting(chain, governor):
    chain.mine(governor.voting_period_blocks())


def passed_proposal(chain, token, governor, accounts, actions=None):
    """Proposal by accounts[1] that both 50-vote holders supported; voting is closed."""
    actions = actions or grant(token, accounts[5])
    pid = governor.propose(*actions, sender=accounts[1]).return_value
    open_voting(chain, governor)
    governor.cast_vote(pid, True, sender=accounts[1])
    governor.cast_vote(pid, True, sender=accounts[2])
    close_voting(chain, governor)
    return pid, actions


# ══════════════════════════════════════════════════════════════════════
#  PROPOSE
# ══════════════════════════════════════════════════════════════════════

class TestPropose:
    """propose()"""

    def test_propose(self, chain, setup, accounts):
        token, governor = setup
        actions = grant(token, accounts[5])
        block = chain.block_number
        receipt = governor.propose(*actions, sender=accounts[1])

        assert receipt.return_value == 1
        assert governor.proposal_count == 1
        proposal = governor.proposals(1)
        assert proposal.proposer == accounts[1]
        assert proposal.start_block == block + VOTING_DELAY
        assert proposal.end_block == block + VOTING_DELAY + VOTING_PERIOD
        assert proposal.proposer_votes == 50
        assert proposal.eta is None
        assert governor.get_actions(1) == (actions[0], actions[1], actions[2])
        assert governor.state(1) == ProposalState.Pending
        assert proposal.to_dict()["proposerVotes"] == 50
        assert "#1" in repr(proposal)

        created = receipt.events["ProposalCreated"]
        assert created["id"] == 1
        assert created["proposer"] == accounts[1]
        assert created["startBlock"] == proposal.start_block

    def test_ids_are_monotonic(self, setup, accounts):
        token, governor = setup
        first = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        second = governor.propose(*grant(token, accounts[6]), sender=accounts[2]).return_value
        assert (first, second) == (1, 2)

    def test_threshold_not_met(self, setup, accounts):
        token, governor = setup
        with pytest.raises(ThresholdNotMetError):
            governor.propose(*grant(token, accounts[5]), sender=accounts[4])
        assert governor.proposal_count == 0

    def test_votes_must_be_final_before_proposing(self, chain, setup, accounts):
        token, governor = setup
        token.transfer(accounts[4], 20, sender=accounts[3])
        token.delegate(accounts[4], sender=accounts[4])
        with pytest.raises(ThresholdNotMetError):
            governor.propose(*grant(token, accounts[5]), sender=accounts[4])
        chain.mine()
        governor.propose(*grant(token, accounts[5]), sender=accounts[4])

    def test_empty_actions(self, setup, accounts):
        _, governor = setup
        with pytest.raises(InvalidProposalError):
            governor.propose([], [], [], sender=accounts[1])

    def test_mismatched_arrays(self, setup, accounts):
        token, governor = setup
        with pytest.raises(InvalidProposalError, match="differ in length"):
            governor.propose([token.address], [0, 0], [b""], sender=accounts[1])

    def test_unknown_proposal(self, setup):
        _, governor = setup
        with pytest.raises(InvalidStateError, match="Unknown proposal"):
            governor.state(42)


# ══════════════════════════════════════════════════════════════════════
#  VOTING
# ══════════════════════════════════════════════════════════════════════

class TestVoting:
    """castVote() and tallies"""

    def test_pending_until_snapshot_passes(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        chain.mine(VOTING_DELAY)
        assert governor.state(pid) == ProposalState.Pending
        with pytest.raises(InvalidStateError, match="Pending"):
            governor.cast_vote(pid, True, sender=accounts[1])
        chain.mine()
        assert governor.state(pid) == ProposalState.Active

    def test_vote_receipt_and_event(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        open_voting(chain, governor)
        receipt = governor.cast_vote(pid, False, sender=accounts[3])

        assert receipt.return_value == 30
        vote = receipt.events["VoteCast"]
        assert vote["voter"] == accounts[3]
        assert vote["support"] is False
        assert vote["votes"] == 30
        assert governor.proposals(pid).against_votes == 30
        stored = governor.get_receipt(pid, accounts[3])
        assert stored.support is False and stored.votes == 30
        assert stored.to_dict()["voter"] == accounts[3]
        assert governor.get_receipt(pid, accounts[2]) is None

    def test_double_vote(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        open_voting(chain, governor)
        governor.cast_vote(pid, True, sender=accounts[1])
        with pytest.raises(AlreadyVotedError):
            governor.cast_vote(pid, False, sender=accounts[1])
        assert governor.proposals(pid).for_votes == 50
        assert governor.proposals(pid).against_votes == 0

    def test_weight_is_snapshot_power(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        open_voting(chain, governor)
        # power gained after the snapshot does not count
        token.transfer(accounts[2], 30, sender=accounts[3])
        token.delegate(accounts[4], sender=accounts[4])
        chain.mine()

        assert token.get_current_votes(accounts[2]) == 80
        assert governor.cast_vote(pid, True, sender=accounts[2]).return_value == 50
        assert governor.cast_vote(pid, True, sender=accounts[3]).return_value == 30
        assert governor.cast_vote(pid, True, sender=accounts[4]).return_value == 0

    def test_voting_closed(self, chain, setup, accounts):
        token, governor = setup
        pid, _ = passed_proposal(chain, token, governor, accounts)
        with pytest.raises(InvalidStateError):
            governor.cast_vote(pid, True, sender=accounts[3])

    def test_succeeded(self, chain, setup, accounts):
        token, governor = setup
        pid, _ = passed_proposal(chain, token, governor, accounts)
        proposal = governor.proposals(pid)
        assert (proposal.for_votes, proposal.against_votes) == (100, 0)
        assert governor.state(pid) == ProposalState.Succeeded

    def test_defeated_below_quorum(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        open_voting(chain, governor)
        governor.cast_vote(pid, True, sender=accounts[1])
        governor.cast_vote(pid, True, sender=accounts[3])
        close_voting(chain, governor)
        assert governor.state(pid) == ProposalState.Defeated

    def test_still_active_on_end_block(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        chain.mine(VOTING_DELAY + VOTING_PERIOD)
        assert chain.block_number == governor.proposals(pid).end_block
        assert governor.state(pid) == ProposalState.Active
        chain.mine()
        assert governor.state(pid) == ProposalState.Defeated


class TestTally:
    """tally_outcome()"""

    def test_concrete_pass(self):
        assert tally_outcome(100, 0, quorum_votes=100, proposer_votes=50, proposal_threshold=10)

    def test_quorum_inclusive(self):
        assert tally_outcome(100, 99, 100, 10, 10)
        assert not tally_outcome(99, 0, 100, 10, 10)

    def test_tie_fails(self):
        assert not tally_outcome(100, 100, 100, 10, 10)

    def test_proposer_below_threshold_fails(self):
        assert not tally_outcome(500, 0, 100, 9, 10)


# ══════════════════════════════════════════════════════════════════════
#  QUEUE & EXECUTE
# ══════════════════════════════════════════════════════════════════════

class TestQueueAndExecute:
    """queueProposal() / executeProposal()"""

    def test_queue(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        receipt = governor.queue_proposal(pid, *actions, sender=accounts[7])

        proposal = governor.proposals(pid)
        assert proposal.eta == chain.time() + DELAY
        assert receipt.events["ProposalQueued"]["eta"] == proposal.eta
        assert receipt.return_value == proposal.operation_id
        assert governor.is_operation(proposal.operation_id)
        assert governor.state(pid) == ProposalState.Queued

    def test_queue_requires_succeeded(self, chain, setup, accounts):
        token, governor = setup
        actions = grant(token, accounts[5])
        pid = governor.propose(*actions, sender=accounts[1]).return_value
        with pytest.raises(InvalidStateError):
            governor.queue_proposal(pid, *actions, sender=accounts[1])

    def test_queue_twice(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        with pytest.raises(InvalidStateError, match="Queued"):
            governor.queue_proposal(pid, *actions, sender=accounts[1])

    def test_identical_operations_collide(self, chain, setup, accounts):
        token, governor = setup
        actions = grant(token, accounts[5])
        first = governor.propose(*actions, sender=accounts[1]).return_value
        second = governor.propose(*actions, sender=accounts[2]).return_value
        open_voting(chain, governor)
        for pid in (first, second):
            governor.cast_vote(pid, True, sender=accounts[1])
            governor.cast_vote(pid, True, sender=accounts[2])
        close_voting(chain, governor)

        governor.queue_proposal(first, *actions, sender=accounts[1])
        with pytest.raises(AlreadyQueuedError):
            governor.queue_proposal(second, *actions, sender=accounts[1])
        chain.sleep(1)
        governor.queue_proposal(second, *actions, sender=accounts[1])

    def test_payload_mismatch(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        other = grant(token, accounts[6])
        with pytest.raises(PayloadMismatchError):
            governor.queue_proposal(pid, *other, sender=accounts[1])
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        chain.mine(1, timestamp=chain.time() + DELAY)
        with pytest.raises(PayloadMismatchError):
            governor.execute_proposal(pid, *other, sender=accounts[1])

    def test_execute_before_queue(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        with pytest.raises(UnknownOperationError):
            governor.execute_proposal(pid, *actions, sender=accounts[1])

    def test_execute_timing_and_exactly_once(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        eta = governor.proposals(pid).eta

        chain.mine(1, timestamp=eta - 1)
        with pytest.raises(TimelockNotReadyError):
            governor.execute_proposal(pid, *actions, sender=accounts[8])

        chain.mine(1, timestamp=eta)
        receipt = governor.execute_proposal(pid, *actions, sender=accounts[8])
        assert receipt.events["ProposalExecuted"]["id"] == pid
        assert receipt.events["Transfer"]["from"] == governor.address
        assert token.balance_of(accounts[5]) == 10
        assert governor.state(pid) == ProposalState.Executed

        with pytest.raises(UnknownOperationError):
            governor.execute_proposal(pid, *actions, sender=accounts[8])
        assert token.balance_of(accounts[5]) == 10

    def test_canceled_twin_cannot_run_shared_operation(self, chain, setup, accounts):
        token, governor = setup
        actions = grant(token, accounts[5])
        first = governor.propose(*actions, sender=accounts[1]).return_value
        second = governor.propose(*actions, sender=accounts[2]).return_value
        open_voting(chain, governor)
        for pid in (first, second):
            governor.cast_vote(pid, True, sender=accounts[1])
            governor.cast_vote(pid, True, sender=accounts[2])
        close_voting(chain, governor)

        governor.queue_proposal(first, *actions, sender=accounts[1])
        governor.cancel_proposal(first, sender=accounts[1])
        governor.queue_proposal(second, *actions, sender=accounts[2])
        operation_id = governor.proposals(second).operation_id
        assert governor.proposals(first).operation_id == operation_id
        chain.mine(1, timestamp=governor.proposals(second).eta)

        with pytest.raises(InvalidStateError, match="Canceled"):
            governor.execute_proposal(first, *actions, sender=accounts[8])
        governor.cancel_proposal(first, sender=accounts[1])
        assert governor.is_operation(operation_id)
        assert governor.state(second) == ProposalState.Queued
        assert token.balance_of(accounts[5]) == 0

        governor.execute_proposal(second, *actions, sender=accounts[8])
        assert token.balance_of(accounts[5]) == 10
        with pytest.raises(InvalidStateError, match="Executed"):
            governor.execute_proposal(second, *actions, sender=accounts[8])
        with pytest.raises(InvalidStateError, match="Executed"):
            governor.queue_proposal(second, *actions, sender=accounts[2])
        assert token.balance_of(accounts[5]) == 10

    def test_queued_outcome_survives_parameter_change(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        governor.queue_proposal(pid, *actions, sender=accounts[1])

        raise_quorum = ([governor.address], [0], [Governor.encode_input("update_quorum_votes", 2 ** 90)])
        amendment, raise_quorum = passed_proposal(chain, token, governor, accounts, raise_quorum)
        governor.queue_proposal(amendment, *raise_quorum, sender=accounts[1])
        chain.mine(1, timestamp=governor.proposals(amendment).eta)
        governor.execute_proposal(amendment, *raise_quorum, sender=accounts[1])
        assert governor.quorum_votes() == 2 ** 90

        assert governor.state(pid) == ProposalState.Queued
        governor.execute_proposal(pid, *actions, sender=accounts[1])
        assert governor.state(pid) == ProposalState.Executed
        assert token.balance_of(accounts[5]) == 10

    def test_failed_action_rolls_back(self, chain, setup, accounts):
        token, governor = setup
        bomb = Bomb.deploy(chain, sender=accounts[0])
        targets, values, payloads = grant(token, accounts[5])
        actions = (
            targets + [bomb.address],
            values + [0],
            payloads + [Bomb.encode_input("explode")],
        )
        pid, actions = passed_proposal(chain, token, governor, accounts, actions)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        chain.mine(1, timestamp=chain.time() + DELAY)

        with pytest.raises(ExecutionRevertedError, match="target exploded"):
            governor.execute_proposal(pid, *actions, sender=accounts[1])
        assert token.balance_of(accounts[5]) == 0
        assert governor.state(pid) == ProposalState.Queued

    def test_value_actions(self, chain, setup, accounts):
        token, governor = setup
        chain.set_balance(accounts[1], 1000)
        chain.send_transaction(accounts[1], governor.address, 500)
        assert chain.balance(governor.address) == 500

        actions = ([accounts[6]], [200], [b""])
        pid, actions = passed_proposal(chain, token, governor, accounts, actions)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        chain.mine(1, timestamp=chain.time() + DELAY)
        governor.execute_proposal(pid, *actions, sender=accounts[1])
        assert chain.balance(accounts[6]) == 200
        assert chain.balance(governor.address) == 300


# ══════════════════════════════════════════════════════════════════════
#  CANCEL
# ══════════════════════════════════════════════════════════════════════

class TestCancel:
    """cancelProposal()"""

    def test_proposer_cancels_pending(self, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        receipt = governor.cancel_proposal(pid, sender=accounts[1])
        assert receipt.events["ProposalCanceled"]["id"] == pid
        assert governor.state(pid) == ProposalState.Canceled

    def test_guardian_cancels_active(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        open_voting(chain, governor)
        governor.cancel_proposal(pid, sender=accounts[9])
        assert governor.state(pid) == ProposalState.Canceled
        with pytest.raises(InvalidStateError):
            governor.cast_vote(pid, True, sender=accounts[2])

    def test_stranger_cannot_cancel(self, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        with pytest.raises(UnauthorizedError):
            governor.cancel_proposal(pid, sender=accounts[7])

    def test_anyone_cancels_once_proposer_below_threshold(self, chain, setup, accounts):
        token, governor = setup
        pid = governor.propose(*grant(token, accounts[5]), sender=accounts[1]).return_value
        token.transfer(accounts[2], 45, sender=accounts[1])
        chain.mine()
        governor.cancel_proposal(pid, sender=accounts[7])
        assert governor.state(pid) == ProposalState.Canceled

    def test_cancel_queued_removes_operation(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        operation_id = governor.proposals(pid).operation_id
        assert governor.is_operation(operation_id)

        receipt = governor.cancel_proposal(pid, sender=accounts[1])
        assert "Cancelled" in receipt.events
        assert not governor.is_operation(operation_id)
        assert governor.state(pid) == ProposalState.Canceled

        chain.mine(1, timestamp=chain.time() + 2 * DELAY)
        with pytest.raises(UnknownOperationError):
            governor.execute_proposal(pid, *actions, sender=accounts[1])
        with pytest.raises(InvalidStateError):
            governor.queue_proposal(pid, *actions, sender=accounts[1])

    def test_cannot_cancel_executed(self, chain, setup, accounts):
        token, governor = setup
        pid, actions = passed_proposal(chain, token, governor, accounts)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        chain.mine(1, timestamp=chain.time() + DELAY)
        governor.execute_proposal(pid, *actions, sender=accounts[1])
        with pytest.raises(InvalidStateError, match="Executed"):
            governor.cancel_proposal(pid, sender=accounts[9])


# ══════════════════════════════════════════════════════════════════════
#  SELF-AMENDMENT
# ══════════════════════════════════════════════════════════════════════

class TestParameterUpdates:
    """update*() entry points"""

    @pytest.mark.parametrize("method", [
        "update_quorum_votes",
        "update_proposal_threshold",
        "update_voting_delay_blocks",
        "update_voting_period_blocks",
        "update_delay",
    ])
    def test_direct_update_rejected(self, setup, accounts, method):
        _, governor = setup
        for caller in (accounts[0], accounts[1], accounts[9]):
            with pytest.raises(UnauthorizedError):
                getattr(governor, method)(1, sender=caller)
        assert governor.quorum_votes() == QUORUM
        assert governor.get_min_delay() == DELAY

    def test_update_through_proposal(self, chain, setup, accounts):
        token, governor = setup
        actions = (
            [governor.address, governor.address],
            [0, 0],
            [
                Governor.encode_input("update_quorum_votes", 60),
                Governor.encode_input("update_voting_period_blocks", 20),
            ],
        )
        pid, actions = passed_proposal(chain, token, governor, accounts, actions)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        chain.mine(1, timestamp=chain.time() + DELAY)
        receipt = governor.execute_proposal(pid, *actions, sender=accounts[1])

        assert receipt.events["UpdateQuorumVotes"]["oldQuorumVotes"] == QUORUM
        assert receipt.events["UpdateQuorumVotes"]["newQuorumVotes"] == 60
        assert receipt.events["UpdateVotingPeriodBlocks"]["newVotingPeriodBlocks"] == 20
        assert governor.quorum_votes() == 60
        assert governor.voting_period_blocks() == 20

    def test_invalid_update_reverts_execution(self, chain, setup, accounts):
        token, governor = setup
        actions = (
            [governor.address],
            [0],
            [Governor.encode_input("update_voting_period_blocks", 0)],
        )
        pid, actions = passed_proposal(chain, token, governor, accounts, actions)
        governor.queue_proposal(pid, *actions, sender=accounts[1])
        chain.mine(1, timestamp=chain.time() + DELAY)
        with pytest.raises(ExecutionRevertedError):
            governor.execute_proposal(pid, *actions, sender=accounts[1])
        assert governor.voting_period_blocks() == VOTING_PERIOD

    def test_to_dict(self, setup):
        _, governor = setup
        d = governor.to_dict()
        assert d["quorumVotes"] == QUORUM
        assert d["minDelay"] == DELAY
        assert d["proposalCount"] == 0
