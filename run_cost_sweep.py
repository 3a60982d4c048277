#!/usr/bin/env python3

"""
Sweep the rewards index across fan-out values and inactivity spans, measuring claim cost.

Parameters are supplied via a YAML configuration. For every page size B and
every idle span n, a single LP deposits, the pool syncs n times while the LP
stays idle, and the LP then claims. The metered storage reads and writes of
that claim are collected and plotted on log-log axes; they grow like
O(B · log_B n) rather than O(n).
"""

import argparse
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import yaml
from tqdm import tqdm

from lp_rewards.pool import RewardedPool
from lp_rewards.token import TokenLedger
from lp_rewards.utils import RewardsConfig


@dataclass
class CostSweepConfig:
    page_sizes: Sequence[int]
    idle_spans: Sequence[int]
    rate: int
    workers: int
    output: Path
    csv: Path


def load_cost_sweep_config(config_path: Path) -> CostSweepConfig:
    """Load and validate the cost sweep configuration from YAML."""
    resolved = Path(config_path).expanduser().resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"Cost sweep configuration file not found: {resolved}")

    with resolved.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)

    if not isinstance(data, dict):
        raise ValueError(f"Root of {resolved} must be a mapping.")

    sweep_cfg = data.get("cost_sweep")
    if not isinstance(sweep_cfg, dict):
        raise ValueError(f"Configuration must contain a 'cost_sweep' mapping in {resolved}.")

    required_keys = ["page_sizes", "idle_spans", "rate", "workers", "output", "csv"]
    missing = [key for key in required_keys if key not in sweep_cfg]
    if missing:
        raise ValueError(f"Missing required cost sweep keys in {resolved}: {missing}")

    try:
        rate = int(sweep_cfg["rate"])
        workers = int(sweep_cfg["workers"])
    except (TypeError, ValueError) as exc:
        raise ValueError("rate and workers must be integers.") from exc

    parsed: Dict[str, Tuple[int, ...]] = {}
    for key, lowest in (("page_sizes", 2), ("idle_spans", 1)):
        raw_values = sweep_cfg[key]
        if not isinstance(raw_values, (list, tuple)) or len(raw_values) == 0:
            raise ValueError(f"'{key}' must be a non-empty list of integers.")
        try:
            values = tuple(int(v) for v in raw_values)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"'{key}' values must be integers.") from exc
        if min(values) < lowest:
            raise ValueError(f"'{key}' values must be at least {lowest}.")
        parsed[key] = values

    cfg_dir = resolved.parent
    return CostSweepConfig(
        page_sizes=parsed["page_sizes"],
        idle_spans=parsed["idle_spans"],
        rate=rate,
        workers=workers,
        output=(cfg_dir / Path(sweep_cfg["output"])).resolve(),
        csv=(cfg_dir / Path(sweep_cfg["csv"])).resolve(),
    )


def measure_claim_cost(page_size: int, idle_span: int, rate: int) -> Tuple[int, int, int, int, int]:
    """Return (page_size, idle_span, reads, writes, payout) of a claim after `idle_span` idle epochs."""
    token = TokenLedger("REWARD")
    pool = RewardedPool(token, config=RewardsConfig(page_size=page_size))
    token.mint(pool.storage.custody_account, rate * (idle_span + 2))

    pool.set_rewards_config(expires_at=idle_span + 2, rate=rate)
    pool.deposit("lp", 1_000)
    for _ in range(idle_span):
        pool.advance(1)
        pool.sync()

    pool.storage.stats.reset()
    payout = pool.claim("lp")
    stats = pool.storage.stats
    return page_size, idle_span, stats.total_reads, stats.total_writes, payout


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Measure claim storage cost across index fan-outs using a YAML configuration."
    )
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file describing the sweep.",
    )
    return parser.parse_args()


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def main() -> None:
    args = parse_args()
    sweep_cfg = load_cost_sweep_config(args.config)
    ensure_parent(sweep_cfg.output)
    ensure_parent(sweep_cfg.csv)

    plan = [(b, n) for b in sweep_cfg.page_sizes for n in sweep_cfg.idle_spans]
    rows: List[Tuple[int, int, int, int, int]] = []

    progress = tqdm(total=len(plan), desc="Measuring claims", unit="run")
    try:
        with ProcessPoolExecutor(max_workers=sweep_cfg.workers) as executor:
            futures = [executor.submit(measure_claim_cost, b, n, sweep_cfg.rate) for b, n in plan]
            for future in as_completed(futures):
                rows.append(future.result())
                progress.update(1)
    finally:
        progress.close()

    df = pd.DataFrame(rows, columns=["page_size", "idle_span", "reads", "writes", "payout"])
    df = df.sort_values(["page_size", "idle_span"]).reset_index(drop=True)
    df.to_csv(sweep_cfg.csv, index=False)

    fig, ax = plt.subplots(figsize=(7, 4.5))
    for page_size, group in df.groupby("page_size"):
        ax.plot(group["idle_span"], group["reads"], "o-", label=f"B = {page_size}")
    spans = np.asarray(sorted(sweep_cfg.idle_spans), dtype=float)
    ax.plot(spans, spans, "k--", alpha=0.4, label="linear scan")
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.set_xlabel("Idle epochs before claim")
    ax.set_ylabel("Storage reads per claim")
    ax.grid(True, alpha=0.3)
    ax.legend(frameon=False)
    fig.tight_layout()
    fig.savefig(sweep_cfg.output, dpi=150, bbox_inches="tight")
    print(f"[RESULT] Plot saved to {sweep_cfg.output}")
    print(f"[RESULT] CSV saved to {sweep_cfg.csv}")


if __name__ == "__main__":
    main()
