"""
Fungible token ledger used for reward payouts.
"""
from __future__ import annotations

from typing import Callable, Dict, Hashable, Optional

from .errors import InsufficientBalance


class TokenLedger:
    """
    Balances of a single token.

    `on_transfer(sender, recipient, amount)` runs after a transfer has been
    applied; tests use it to stand in for a token contract that calls back
    into the pool.
    """

    def __init__(self, token_id: str, on_transfer: Optional[Callable[[Hashable, Hashable, int], None]] = None):
        self.token_id = token_id
        self.on_transfer = on_transfer
        self.balances: Dict[Hashable, int] = {}

    def balance(self, account: Hashable) -> int:
        return self.balances.get(account, 0)

    def mint(self, account: Hashable, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"mint amount must be non-negative, got {amount}")
        self.balances[account] = self.balance(account) + amount

    def transfer(self, sender: Hashable, recipient: Hashable, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"transfer amount must be non-negative, got {amount}")
        available = self.balance(sender)
        if available < amount:
            raise InsufficientBalance(
                f"{sender!r} holds {available} {self.token_id}, cannot transfer {amount}"
            )
        self.balances[sender] = available - amount
        self.balances[recipient] = self.balance(recipient) + amount
        if self.on_transfer is not None:
            self.on_transfer(sender, recipient, amount)
