import pytest

from lp_rewards.errors import ArithmeticOverflow, InsufficientBalance, ReentrancyError
from lp_rewards.pool import RewardedPool
from lp_rewards.token import TokenLedger
from lp_rewards.utils import U128_MAX


def _prepare_pool(custody_funds: int = 1_000_000_0000000):
    token = TokenLedger("REWARD")
    pool = RewardedPool(token)
    token.mint(pool.storage.custody_account, custody_funds)
    return pool, token


def test_sole_holder_earns_everything_after_deposit():
    pool, token = _prepare_pool()
    pool.set_rewards_config(expires_at=pool.now + 60, rate=10)

    pool.advance(10)
    pool.deposit("alice", 100)
    pool.advance(30)

    assert pool.get_rewards_info("alice")["amount_due"] == 300
    assert pool.claim("alice") == 300
    assert token.balance("alice") == 300
    assert pool.get_rewards_info("alice")["amount_due"] == 0
    assert pool.claim("alice") == 0
    assert token.balance("alice") == 300


def test_half_campaign_claim_with_fractional_rate():
    pool, token = _prepare_pool()
    rate = 10_5000000
    pool.set_rewards_config(expires_at=pool.now + 60, rate=rate)

    pool.advance(10)
    pool.deposit("alice", 100)
    pool.advance(30)

    assert pool.claim("alice") == rate * 60 // 2
    assert token.balance("alice") == rate * 60 // 2


def test_rewards_split_pro_rata():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=1_000, rate=9)
    pool.deposit("alice", 100)
    pool.deposit("bob", 200)

    pool.advance(30)
    alice = pool.get_rewards_info("alice")
    bob = pool.get_rewards_info("bob")

    assert alice["amount_due"] == 90
    assert bob["amount_due"] == 180
    assert alice["amount_due"] + bob["amount_due"] == bob["accumulated"] == 270


def test_late_joiner_shares_only_later_emission():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=1_000, rate=10)
    pool.deposit("alice", 100)
    pool.advance(10)
    pool.deposit("bob", 100)
    pool.advance(10)

    assert pool.claim("alice") == 150
    assert pool.claim("bob") == 50


def test_withdrawal_settles_at_previous_balance():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=1_000, rate=10)
    pool.deposit("alice", 100)
    pool.deposit("bob", 100)
    pool.advance(10)
    pool.withdraw("alice", 100)
    pool.advance(10)

    assert pool.share_balance("alice") == 0
    assert pool.claim("alice") == 50
    assert pool.claim("bob") == 150


def test_reward_stops_at_expiry():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=60, rate=10)
    pool.deposit("alice", 100)
    pool.advance(1_000)

    assert pool.claim("alice") == 600
    pool.advance(1_000)
    assert pool.claim("alice") == 0


def test_renewed_campaign_flushes_outgoing_rate():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=60, rate=10)
    pool.deposit("alice", 100)
    pool.advance(30)
    pool.set_rewards_config(expires_at=pool.now + 60, rate=20)
    pool.advance(500)

    assert pool.claim("alice") == 10 * 30 + 20 * 60


def test_emission_with_no_holders_is_not_distributed():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=1_000, rate=10)
    pool.advance(20)
    pool.deposit("alice", 100)
    pool.advance(20)

    info = pool.get_rewards_info("alice")
    assert info["accumulated"] == 400
    assert info["amount_due"] == 200


def test_rewards_info_reports_campaign():
    pool, _ = _prepare_pool()
    pool.set_rewards_config(expires_at=90, rate=4)

    info = pool.get_rewards_info("alice")
    assert info["rate"] == 4
    assert info["expires_at"] == 90
    assert info["amount_due"] == 0


def test_reentrant_claim_is_rejected_and_rolled_back():
    pool, token = _prepare_pool()
    pool.set_rewards_config(expires_at=60, rate=10)
    pool.deposit("alice", 100)
    pool.advance(30)
    token.on_transfer = lambda sender, recipient, amount: pool.claim(recipient)

    with pytest.raises(ReentrancyError):
        pool.claim("alice")
    assert token.balance("alice") == 0

    token.on_transfer = None
    assert pool.claim("alice") == 300
    assert token.balance("alice") == 300


def test_failed_transfer_keeps_unclaimed():
    pool, token = _prepare_pool(custody_funds=100)
    pool.set_rewards_config(expires_at=60, rate=10)
    pool.deposit("alice", 100)
    pool.advance(30)

    with pytest.raises(InsufficientBalance):
        pool.claim("alice")
    assert token.balance("alice") == 0
    assert pool.get_rewards_info("alice")["amount_due"] == 300


def test_overflowing_deposit_leaves_balances_untouched():
    pool, _ = _prepare_pool()
    pool.deposit("alice", U128_MAX)
    epoch = pool.storage.get_pool_state().epoch

    with pytest.raises(ArithmeticOverflow):
        pool.deposit("alice", 1)
    assert pool.share_balance("alice") == U128_MAX
    assert pool.total_shares == U128_MAX
    assert pool.storage.get_pool_state().epoch == epoch


def test_withdraw_more_than_held():
    pool, _ = _prepare_pool()
    pool.deposit("alice", 10)

    with pytest.raises(InsufficientBalance):
        pool.withdraw("alice", 11)
    assert pool.share_balance("alice") == 10


@pytest.mark.parametrize("expires_at, rate", [(100, -1), (5, 10)])
def test_invalid_campaign_is_rejected(expires_at, rate):
    pool, _ = _prepare_pool()
    pool.advance(10)

    with pytest.raises(ValueError):
        pool.set_rewards_config(expires_at=expires_at, rate=rate)


def test_time_only_moves_forward():
    pool, _ = _prepare_pool()

    with pytest.raises(ValueError):
        pool.advance(-1)


def test_two_year_campaign_with_18_decimal_token():
    year = 365 * 24 * 3600
    rate = 10 * 10 ** 18
    pool, token = _prepare_pool(custody_funds=10 ** 30)
    pool.set_rewards_config(expires_at=2 * year, rate=rate)
    pool.deposit("alice", 1_000 * 10 ** 18)
    pool.advance(2 * year)

    pool.withdraw("alice", 1_000 * 10 ** 18)
    assert pool.claim("alice") == rate * 2 * year
    assert token.balance("alice") == rate * 2 * year
