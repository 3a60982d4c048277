import numpy as np

from lp_rewards.run import main, simulate
from run_cost_sweep import load_cost_sweep_config, measure_claim_cost


def test_simulate_outputs_consistent_lengths():
    out = simulate(T=80, dt=3, seed=1, N_LP=5, rate=100, campaign_length=120, renew_every=30, tau=3)

    n = len(out["time"])
    assert n == 80
    for key in ("epoch", "accumulated", "claimed", "total_shares", "storage_reads"):
        assert len(out[key]) == n
    assert np.all(np.diff(out["epoch"]) >= 0)
    assert np.all(np.diff(out["accumulated"]) >= 0)
    assert len(out["agents"]) == 5


def test_simulate_never_pays_more_than_generated():
    out = simulate(T=120, dt=2, seed=3, N_LP=6, rate=37, campaign_length=90, renew_every=40, tau=2)

    assert out["total_claimed"] <= out["total_accumulated"]
    assert out["agents"]["claimed"].sum() == out["total_claimed"]
    assert out["undistributed"] == out["total_accumulated"] - out["total_claimed"]
    assert sum(out["action_counts"].values()) > 0


def test_simulate_is_reproducible():
    a = simulate(T=40, seed=11, N_LP=4, tau=2)
    b = simulate(T=40, seed=11, N_LP=4, tau=2)

    assert a["total_claimed"] == b["total_claimed"]
    assert a["agents"].equals(b["agents"])


def test_cli_writes_agent_csv(tmp_path, capsys):
    cfg = tmp_path / "sim.yml"
    cfg.write_text(
        "scenario: smoke\n"
        "simulate:\n"
        "  T: 20\n  dt: 5\n  seed: 2\n  N_LP: 3\n  rate: 10\n  campaign_length: 50\n"
        "  renew_every: 0\n  deposit_mean: 50.0\n  deposit_prob: 0.5\n  withdraw_prob: 0.1\n"
        "  claim_prob: 0.2\n  tau: 2\n  page_size: 3\n  precision: 1000000\n"
        "  visualize: false\n  progress: false\n"
    )

    main(["--config", str(cfg), "--csv", str(tmp_path / "agents.csv")])

    assert (tmp_path / "agents_0.csv").exists()
    assert "[RESULT] smoke" in capsys.readouterr().out


def test_claim_cost_is_sublinear_in_idle_span():
    _, _, reads_short, _, payout_short = measure_claim_cost(page_size=4, idle_span=20, rate=10)
    _, _, reads_long, _, payout_long = measure_claim_cost(page_size=4, idle_span=1_000, rate=10)

    assert payout_short == 200
    assert payout_long == 10_000
    assert reads_long < 1_000 // 4
    assert reads_long < 10 * reads_short


def test_cost_sweep_config(tmp_path):
    path = tmp_path / "sweep.yml"
    path.write_text(
        "cost_sweep:\n  page_sizes: [2, 8]\n  idle_spans: [10, 100]\n  rate: 5\n"
        "  workers: 1\n  output: out/cost.png\n  csv: out/cost.csv\n"
    )

    cfg = load_cost_sweep_config(path)
    assert cfg.page_sizes == (2, 8)
    assert cfg.csv == (tmp_path / "out" / "cost.csv").resolve()
