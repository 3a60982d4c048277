"""
LP agents that deposit, withdraw and claim against a rewarded pool.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .pool import RewardedPool


# =============================================================================
# LP agents
# =============================================================================

@dataclass
class LPAgent:
    """
    A liquidity provider acting on an asynchronous geometric clock.

    On each review the agent draws one action: deposit (a lognormal number of
    shares, capped by the remaining budget), withdraw (a uniform fraction of its
    shares), claim, or nothing. Tallies are kept in reward-token units.
    """
    id: int
    deposit_prob: float = 0.4
    withdraw_prob: float = 0.2
    claim_prob: float = 0.2
    review_rate: float = 0.1      # p for geometric clock; 1/tau at runtime
    next_review: int = 0          # steps until this LP acts again
    shares_budget: int = 10_000
    deposited: int = 0
    withdrawn: int = 0
    claimed: int = 0
    n_claims: int = 0

    @property
    def name(self) -> str:
        return f"lp_{self.id}"

    def schedule(self, rng: np.random.Generator) -> None:
        self.next_review = int(rng.geometric(self.review_rate))


def act(agent: LPAgent, pool: RewardedPool, rng: np.random.Generator, deposit_mean: float) -> str:
    """Run one review of `agent`; returns the action taken."""
    held = pool.share_balance(agent.name)
    u = rng.random()

    if u < agent.deposit_prob:
        room = agent.shares_budget - held
        size = min(room, max(1, int(rng.lognormal(np.log(max(deposit_mean, 1.0)), 0.5))))
        if size > 0:
            pool.deposit(agent.name, size)
            agent.deposited += size
            return "deposit"
        return "idle"

    u -= agent.deposit_prob
    if u < agent.withdraw_prob:
        if held > 0:
            size = max(1, int(held * rng.uniform(0.1, 1.0)))
            pool.withdraw(agent.name, size)
            agent.withdrawn += size
            return "withdraw"
        return "idle"

    u -= agent.withdraw_prob
    if u < agent.claim_prob:
        agent.claimed += pool.claim(agent.name)
        agent.n_claims += 1
        return "claim"
    return "idle"
