"""
Reward-accrual engine for liquidity-provider shares.
"""
from . import errors
from . import index
from . import manager
from . import pool
from . import storage
from . import token
from . import utils

__all__ = ['errors', 'index', 'manager', 'pool', 'storage', 'token', 'utils']
