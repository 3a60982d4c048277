"""
Exceptions raised by the rewards engine and its collaborators.

Every one of them aborts the enclosing pool call; the storage transaction
discards whatever that call had written.
"""


class RewardsError(Exception):
    """Base class for rewards engine failures."""


class IndexConsistencyViolation(RewardsError, LookupError):
    """An index read hit an epoch that was never recorded (epoch continuity broken)."""

    def __init__(self, level: int, epoch: int):
        self.level = level
        self.epoch = epoch
        super().__init__(f"no level-{level} entry recorded for epoch {epoch}")


class ArithmeticOverflow(RewardsError, OverflowError):
    """A checked operation left its representable range (u128 for amounts)."""

    def __init__(self, op: str, a: int, b: int):
        self.op = op
        self.operands = (a, b)
        super().__init__(f"{a} {op} {b} is outside the representable range")


class StorageKeyMissing(RewardsError, KeyError):
    """Pool-scoped state was read before `initialize()` wrote it."""


class ReentrancyError(RewardsError, RuntimeError):
    """A pool entry point was invoked while another call on the same pool is still running."""


class InsufficientBalance(RewardsError, ValueError):
    """A token transfer or share withdrawal exceeds the available balance."""
