"""
Two-level lazy reward accrual: pool-level sync and per-user settlement.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Callable, Hashable, Optional

from .index import IntervalIndex
from .storage import Campaign, PoolAccrualState, RewardsStorage, UserAccrualState
from .token import TokenLedger
from .utils import RewardsConfig, checked_add, checked_mul, checked_sub, mul_div, per_share


class RewardsManager:
    """
    Reward-accrual engine of one pool.

    Every share-weighted operation runs `sync` first (bring the emission clock up
    to date and record the per-share value of the new epoch) and then settles the
    user against the pool state. Nothing here locks: the pool serialises calls and
    provides the all-or-nothing transaction around them.
    """

    def __init__(
        self,
        storage: RewardsStorage,
        clock: Callable[[], int],
        token: Optional[TokenLedger] = None,
        config: Optional[RewardsConfig] = None,
    ):
        self.config = config or RewardsConfig()
        self.storage = storage
        self.clock = clock
        self.token = token
        self.index = IntervalIndex(storage, self.config.page_size, self.config.max_level)

    def initialize(self) -> None:
        self.index.record(0, 0)
        self.storage.set_pool_state(PoolAccrualState(epoch=0, accumulated=0, last_sync=0))
        self.storage.set_campaign(Campaign(rate=0, expires_at=0))

    # ----- pool accrual -----
    def sync(self, total_shares: int) -> PoolAccrualState:
        """
        Advance the pool's accrual state to now.

        1. campaign running: snapshot reward up to now;
        2. campaign closed by an earlier sync: zero-generation epoch up to now;
        3. campaign expired since the last sync: close it at `expires_at`,
           then a zero-generation epoch up to now.
        """
        if total_shares < 0:
            raise ValueError(f"total_shares must be non-negative, got {total_shares}")
        campaign = self.storage.get_campaign()
        state = self.storage.get_pool_state()
        now = self.clock()

        if now < campaign.expires_at:
            return self._accrue_until(now, campaign, state, total_shares)
        if state.last_sync > campaign.expires_at:
            # TODO: reuse the current epoch here instead of growing the index for every no-op sync
            return self._append_epoch(
                0,
                total_shares,
                PoolAccrualState(state.epoch + 1, state.accumulated, now),
            )

        closed = self._accrue_until(campaign.expires_at, campaign, state, total_shares)
        return self._append_epoch(
            0,
            total_shares,
            PoolAccrualState(closed.epoch + 1, closed.accumulated, now),
        )

    def _accrue_until(
        self,
        moment: int,
        campaign: Campaign,
        state: PoolAccrualState,
        total_shares: int,
    ) -> PoolAccrualState:
        generated = checked_mul(checked_sub(moment, state.last_sync), campaign.rate)
        return self._append_epoch(
            generated,
            total_shares,
            PoolAccrualState(
                epoch=state.epoch + 1,
                accumulated=checked_add(state.accumulated, generated),
                last_sync=moment,
            ),
        )

    def _append_epoch(self, generated: int, total_shares: int, new_state: PoolAccrualState) -> PoolAccrualState:
        self.storage.set_pool_state(new_state)
        value = per_share(generated, total_shares, self.config.precision)
        self.index.record(self.storage.get_pool_state().epoch, value)
        return new_state

    # ----- user settlement -----
    def settle(self, user: Hashable, total_shares: int, user_balance_shares: int) -> UserAccrualState:
        if user_balance_shares < 0:
            raise ValueError(f"user_balance_shares must be non-negative, got {user_balance_shares}")
        pool_state = self.sync(total_shares)
        user_state = self.storage.get_user_state(user)

        if user_state is None:
            return self._checkpoint(user, pool_state, 0)

        if user_state.checkpoint_accumulated == pool_state.accumulated:
            # nothing generated since the last settlement
            return user_state

        if user_balance_shares == 0:
            return self._checkpoint(user, pool_state, user_state.unclaimed)

        reward = self.user_reward(user_state.last_epoch + 1, pool_state.epoch, user_balance_shares)
        return self._checkpoint(user, pool_state, checked_add(user_state.unclaimed, reward))

    def user_reward(self, start_epoch: int, end_epoch: int, user_balance_shares: int) -> int:
        """Reward owed to `user_balance_shares` shares held over epochs start..=end."""
        per_share_sum = self.index.range_sum(start_epoch, end_epoch, allow_top_level=True)
        return mul_div(per_share_sum, user_balance_shares, self.config.precision)

    def _checkpoint(self, user: Hashable, pool_state: PoolAccrualState, unclaimed: int) -> UserAccrualState:
        new_state = UserAccrualState(
            last_epoch=pool_state.epoch,
            checkpoint_accumulated=pool_state.accumulated,
            unclaimed=unclaimed,
        )
        self.storage.set_user_state(user, new_state)
        return new_state

    def amount_due(self, user: Hashable, total_shares: int, user_balance_shares: int) -> int:
        """Settle `user` and return the unclaimed amount. Persists the new checkpoint."""
        return self.settle(user, total_shares, user_balance_shares).unclaimed

    def claim(self, user: Hashable, total_shares: int, user_balance_shares: int) -> int:
        """
        Settle `user`, zero the unclaimed balance and pay it out from custody.

        The zeroed state is persisted before the transfer, so a callee that calls
        back into the engine already sees nothing left to claim.
        """
        if self.token is None:
            raise RuntimeError("no reward token attached to this rewards manager")
        if self.token.token_id != self.storage.reward_token:
            raise RuntimeError(
                f"attached token {self.token.token_id!r} is not the pool reward token {self.storage.reward_token!r}"
            )
        user_state = self.settle(user, total_shares, user_balance_shares)
        amount = user_state.unclaimed
        self.storage.set_user_state(user, replace(user_state, unclaimed=0))

        if amount > 0:
            self.token.transfer(self.storage.custody_account, user, amount)
        return amount
