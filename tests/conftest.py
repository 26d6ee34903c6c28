"""
Shared fixtures: a fresh ledger, and a fully wired governance deployment
(voting token, governor, proxy admin and a proxied router).
"""

import os
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from govledger.config import GovernanceConfig
from govledger.contracts import Chain, Contract, TransactionReceipt, external, view
from govledger.governance import Governor, ProposalState
from govledger.tokens import VotingToken
from govledger.upgrades import ProxyAdmin, TransparentUpgradeableProxy


# ══════════════════════════════════════════════════════════════════════
#  SAMPLE CONTRACTS
# ══════════════════════════════════════════════════════════════════════

class Router(Contract):
    """Minimal upgradeable implementation sitting behind the proxy."""

    def __init__(self, version: int):
        self.version = version
        self.pings = 0

    @view("version()")
    def get_version(self) -> int:
        return self.version

    @external("ping(uint256)")
    def ping(self, count: int) -> int:
        self.pings += count
        self._emit("Pinged", caller=self.msg_sender, count=count)
        return self.pings


# ══════════════════════════════════════════════════════════════════════
#  ENVIRONMENT
# ══════════════════════════════════════════════════════════════════════

@dataclass
class GovernanceEnvironment:
    chain: Chain
    config: GovernanceConfig
    deployer: str
    multisig: str
    token: VotingToken
    governor: Governor
    router: Router
    proxy_admin: ProxyAdmin
    proxy: TransparentUpgradeableProxy

    @property
    def holders(self) -> dict:
        return {
            "DAO": self.governor.address,
            "MULTISIG": self.multisig,
            "TREASURY": self.proxy.address,
        }


def deploy_environment(chain: Chain, config: Optional[GovernanceConfig] = None) -> GovernanceEnvironment:
    config = config or GovernanceConfig()
    deployer, multisig = chain.accounts[0], chain.accounts[1]
    gov = config.governor

    token = VotingToken.deploy(
        chain, config.token.name, config.token.symbol, config.token.decimals, sender=deployer
    )
    governor = Governor.deploy(
        chain,
        gov.quorum_votes,
        gov.proposal_threshold,
        gov.voting_delay_blocks,
        gov.voting_period_blocks,
        token.address,
        multisig,
        gov.min_delay,
        sender=deployer,
    )
    router = Router.deploy(chain, 1, sender=deployer)
    proxy_admin = ProxyAdmin.deploy(chain, governor.address, sender=deployer)
    proxy = TransparentUpgradeableProxy.deploy(
        chain, router.address, proxy_admin.address, sender=deployer
    )

    env = GovernanceEnvironment(
        chain=chain,
        config=config,
        deployer=deployer,
        multisig=multisig,
        token=token,
        governor=governor,
        router=router,
        proxy_admin=proxy_admin,
        proxy=proxy,
    )
    balances = config.token.initial_balances
    token.initialize(
        [env.holders[role] for role in balances],
        [balances[role] for role in balances],
        governor.address,
        sender=deployer,
    )
    chain.mine()
    return env


def execute_proposal(
    env: GovernanceEnvironment,
    targets: Sequence[str],
    values: Sequence[int],
    payloads: Sequence[bytes],
    proposer: Optional[str] = None,
) -> TransactionReceipt:
    """Drive a proposal through propose → vote → queue → execute."""
    chain, governor = env.chain, env.governor
    proposer = proposer or env.multisig

    chain.mine()
    proposal_id = governor.propose(targets, values, payloads, sender=proposer).return_value
    chain.mine(governor.voting_delay_blocks() + 1)
    governor.cast_vote(proposal_id, True, sender=proposer)
    chain.mine(governor.voting_period_blocks())

    assert governor.state(proposal_id) == ProposalState.Succeeded
    delay = governor.get_min_delay()
    governor.queue_proposal(proposal_id, targets, values, payloads, sender=proposer)
    assert governor.state(proposal_id) == ProposalState.Queued
    chain.mine(1, timestamp=chain.time() + delay)
    return governor.execute_proposal(proposal_id, targets, values, payloads, sender=proposer)


# ══════════════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def chain() -> Chain:
    return Chain()


@pytest.fixture
def accounts(chain) -> List[str]:
    return chain.accounts


@pytest.fixture
def environment(chain) -> GovernanceEnvironment:
    return deploy_environment(chain)


@pytest.fixture
def delegated(environment) -> GovernanceEnvironment:
    """Environment where the multisig has self-delegated and the delegation is final."""
    environment.token.delegate(environment.multisig, sender=environment.multisig)
    environment.chain.mine()
    return environment
