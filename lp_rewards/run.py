"""
Agent-based simulation of a reward campaign running over a liquidity pool.
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from tqdm import tqdm

from .agents import LPAgent, act
from .pool import RewardedPool
from .token import TokenLedger
from .utils import (
    MAX_LEVEL,
    RewardsConfig,
    load_simulation_parameters,
    next_numbered_path,
)

TITLE_FONT_SIZE = 16
LABEL_FONT_SIZE = 14
LEGEND_FONT_SIZE = 12

DEFAULT_CONFIG = Path(__file__).with_name("rewards_sim_config.yml")


# =============================================================================
# Simulation
# =============================================================================

def simulate(
    T: int = 500,
    dt: int = 5,                  # time units per step
    seed: int = 7,
    N_LP: int = 10,
    rate: int = 1_000,            # campaign emission, tokens per time unit
    campaign_length: int = 600,
    renew_every: int = 150,       # steps between campaign reconfigurations (0 = single campaign)
    deposit_mean: float = 500.0,
    deposit_prob: float = 0.4,
    withdraw_prob: float = 0.2,
    claim_prob: float = 0.2,
    tau: int = 10,
    page_size: int = 7,
    precision: int = 10 ** 12,
    visualize: bool = False,
    progress: bool = False,
) -> Dict[str, Any]:
    """
    Run LP agents against a `RewardedPool` and record the engine's accrual.

    Campaigns of `campaign_length` time units at `rate` are configured at step 0
    and then every `renew_every` steps; the pool syncs the outgoing campaign
    before each replacement. After the last step every agent claims once more.

    Returns the per-step series (numpy arrays) and an `agents` DataFrame. The
    run asserts that nothing is paid out beyond what the campaigns generated.
    """
    rng = np.random.default_rng(seed)

    token = TokenLedger("REWARD")
    config = RewardsConfig(page_size=page_size, max_level=MAX_LEVEL, precision=precision)
    pool = RewardedPool(token, config=config)
    # enough custody to cover every token any campaign can emit
    token.mint(pool.storage.custody_account, rate * dt * (T + 1) + rate * campaign_length)

    agents: List[LPAgent] = []
    for i in range(N_LP):
        lp = LPAgent(
            id=i,
            deposit_prob=deposit_prob,
            withdraw_prob=withdraw_prob,
            claim_prob=claim_prob,
            review_rate=1.0 / max(1, tau),
        )
        lp.schedule(rng)
        agents.append(lp)

    # ------------------ Recorders ------------------
    time_series, epoch_series = [], []
    accumulated_series, claimed_series = [], []
    total_shares_series, reads_series = [], []
    action_counts = {"deposit": 0, "withdraw": 0, "claim": 0, "idle": 0}

    for t in tqdm(range(T), desc="Simulating", unit="step", disable=not progress):
        if t == 0 or (renew_every > 0 and t % renew_every == 0):
            pool.set_rewards_config(pool.now + campaign_length, rate)

        pool.advance(dt)

        # randomised actor order each step
        for i in rng.permutation(N_LP):
            lp = agents[i]
            lp.next_review -= 1
            if lp.next_review > 0:
                continue
            action_counts[act(lp, pool, rng, deposit_mean)] += 1
            lp.schedule(rng)

        state = pool.storage.get_pool_state()
        time_series.append(pool.now)
        epoch_series.append(state.epoch)
        accumulated_series.append(state.accumulated)
        claimed_series.append(sum(lp.claimed for lp in agents))
        total_shares_series.append(pool.total_shares)
        reads_series.append(pool.storage.stats.total_reads)

    # ------------------ Final settlement ------------------
    for lp in agents:
        lp.claimed += pool.claim(lp.name)
        lp.n_claims += 1

    accumulated = pool.storage.get_pool_state().accumulated
    total_claimed = sum(lp.claimed for lp in agents)
    assert total_claimed <= accumulated, "Claims exceed generated rewards"
    assert token.balance(pool.storage.custody_account) >= 0

    agents_df = pd.DataFrame(
        {
            "agent": [lp.name for lp in agents],
            "shares": [pool.share_balance(lp.name) for lp in agents],
            "deposited": [lp.deposited for lp in agents],
            "withdrawn": [lp.withdrawn for lp in agents],
            "claimed": [lp.claimed for lp in agents],
            "n_claims": [lp.n_claims for lp in agents],
        }
    )

    out = {
        "time": np.asarray(time_series, dtype=np.int64),
        "epoch": np.asarray(epoch_series, dtype=np.int64),
        "accumulated": np.asarray(accumulated_series, dtype=float),
        "claimed": np.asarray(claimed_series, dtype=float),
        "total_shares": np.asarray(total_shares_series, dtype=np.int64),
        "storage_reads": np.asarray(reads_series, dtype=np.int64),
        "action_counts": action_counts,
        "total_accumulated": accumulated,
        "total_claimed": total_claimed,
        "undistributed": accumulated - total_claimed,
        "agents": agents_df,
    }

    if visualize:
        plot_accrual(out)
        plt.show()

    return out


def plot_accrual(out: Dict[str, Any], out_path: Optional[Path] = None):
    """Accumulated vs. claimed rewards, and total shares, over simulation time."""
    fig, (ax_rew, ax_sh) = plt.subplots(2, 1, figsize=(10, 6), sharex=True)

    ax_rew.plot(out["time"], out["accumulated"], label="Generated")
    ax_rew.plot(out["time"], out["claimed"], label="Claimed")
    ax_rew.set_ylabel("Reward tokens", fontsize=LABEL_FONT_SIZE)
    ax_rew.set_title("Campaign accrual", fontsize=TITLE_FONT_SIZE)
    ax_rew.legend(fontsize=LEGEND_FONT_SIZE)
    ax_rew.grid(True, alpha=0.3)

    ax_sh.step(out["time"], out["total_shares"], where="post")
    ax_sh.set_xlabel("Time", fontsize=LABEL_FONT_SIZE)
    ax_sh.set_ylabel("Total shares", fontsize=LABEL_FONT_SIZE)
    ax_sh.grid(True, alpha=0.3)

    fig.tight_layout()
    if out_path is not None:
        fig.savefig(out_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
    return fig


# =============================================================================
# CLI
# =============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Simulate LP reward accrual using a YAML configuration."
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to the YAML configuration with a 'simulate' mapping.",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        default=Path("results/agents.csv"),
        help="Base path of the per-agent CSV (a numbered suffix is added).",
    )
    parser.add_argument(
        "--plot",
        type=Path,
        default=None,
        help="Optional path of the accrual figure.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    scenario_label, params = load_simulation_parameters(args.config, simulate_func=simulate)
    params["visualize"] = False

    out = simulate(**params)

    csv_path = next_numbered_path(args.csv)
    out["agents"].to_csv(csv_path, index=False)
    print(f"[RESULT] {scenario_label}: generated {out['total_accumulated']}, "
          f"claimed {out['total_claimed']}, undistributed {out['undistributed']}")
    print(f"[RESULT] CSV saved to {csv_path}")

    if args.plot is not None:
        args.plot.parent.mkdir(parents=True, exist_ok=True)
        plot_accrual(out, args.plot)
        print(f"[RESULT] Plot saved to {args.plot}")


if __name__ == "__main__":
    main()
