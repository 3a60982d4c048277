"""
Liquidity pool surface that drives the rewards engine.

Pricing curves are out of scope here: deposits and withdrawals are expressed
directly in pool shares. What this class owns is the ordering contract around
the engine: every share-balance change is preceded by sync + settle at the
pre-change balances, a campaign is replaced only after the outgoing one has
been synced, and every public call is all-or-nothing.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Hashable, Iterator, Optional

from .errors import InsufficientBalance
from .manager import RewardsManager
from .storage import Campaign, PoolAccrualState, RewardsStorage
from .token import TokenLedger
from .utils import RewardsConfig, U128_MAX, checked_add, checked_sub


class RewardedPool:
    def __init__(
        self,
        rewards_token: TokenLedger,
        custody_account: Hashable = "rewards_custody",
        config: Optional[RewardsConfig] = None,
        now: int = 0,
    ):
        self.now = now
        self.rewards_token = rewards_token
        self.shares: Dict[Hashable, int] = {}
        self.total_shares = 0
        self.storage = RewardsStorage(rewards_token.token_id, custody_account)
        self.manager = RewardsManager(self.storage, lambda: self.now, rewards_token, config)
        with self._call():
            self.manager.initialize()

    # ----- clock -----
    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("time only moves forward")
        self.now += seconds
        return self.now

    @contextmanager
    def _call(self) -> Iterator[None]:
        with self.storage.transaction():
            balances = dict(self.rewards_token.balances)
            try:
                yield
            except BaseException:
                # token balances belong to the same all-or-nothing call
                self.rewards_token.balances = balances
                raise

    # ----- share accounting -----
    def share_balance(self, user: Hashable) -> int:
        return self.shares.get(user, 0)

    def deposit(self, user: Hashable, shares: int) -> int:
        if shares <= 0:
            raise ValueError(f"deposit must be positive, got {shares}")
        with self._call():
            balance = self.share_balance(user)
            self.manager.settle(user, self.total_shares, balance)
            new_balance = checked_add(balance, shares)
            self.total_shares = checked_add(self.total_shares, shares)
            self.shares[user] = new_balance
        return self.shares[user]

    def withdraw(self, user: Hashable, shares: int) -> int:
        if shares <= 0:
            raise ValueError(f"withdrawal must be positive, got {shares}")
        balance = self.share_balance(user)
        if shares > balance:
            raise InsufficientBalance(f"{user!r} holds {balance} shares, cannot withdraw {shares}")
        with self._call():
            self.manager.settle(user, self.total_shares, balance)
            new_balance = checked_sub(balance, shares)
            self.total_shares = checked_sub(self.total_shares, shares)
            self.shares[user] = new_balance
        return self.shares[user]

    # ----- rewards -----
    def sync(self) -> PoolAccrualState:
        with self._call():
            return self.manager.sync(self.total_shares)

    def claim(self, user: Hashable) -> int:
        with self._call():
            return self.manager.claim(user, self.total_shares, self.share_balance(user))

    def get_rewards_info(self, user: Hashable) -> Dict[str, Any]:
        """Current campaign, pool accrual totals and the user's due amount (settles the user)."""
        with self._call():
            amount_due = self.manager.amount_due(user, self.total_shares, self.share_balance(user))
            campaign = self.storage.get_campaign()
            state = self.storage.get_pool_state()
        return {
            "rate": campaign.rate,
            "expires_at": campaign.expires_at,
            "accumulated": state.accumulated,
            "epoch": state.epoch,
            "amount_due": amount_due,
        }

    def set_rewards_config(self, expires_at: int, rate: int) -> None:
        """Replace the campaign after flushing the outgoing one's accrual."""
        if rate < 0 or rate > U128_MAX:
            raise ValueError(f"rate must be within [0, {U128_MAX}], got {rate}")
        if rate > 0 and expires_at < self.now:
            raise ValueError(f"campaign already expired: expires_at={expires_at} < now={self.now}")
        with self._call():
            self.manager.sync(self.total_shares)
            self.storage.set_campaign(Campaign(rate=rate, expires_at=expires_at))
