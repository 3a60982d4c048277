"""
Constants, checked integer arithmetic and configuration loaders for the rewards engine.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from .errors import ArithmeticOverflow


# =============================================================================
# Numeric constants
# =============================================================================

PAGE_SIZE = 7              # fan-out B: entries per page, lower-level blocks per aggregate
MAX_LEVEL = 16             # highest aggregation level (7**16 epochs is far beyond any pool's life)
REWARD_PRECISION = 10 ** 12  # fixed-point scale of the per-share values

U128_MAX = 2 ** 128 - 1    # amounts and shares live in [0, U128_MAX]
PER_SHARE_MAX = 2 ** 256 - 1  # per-share values carry the precision scale, so they get a wider range


# =============================================================================
# Checked arithmetic
# =============================================================================

def _checked(result: int, op: str, a: int, b: int, bound: int = U128_MAX) -> int:
    if result < 0 or result > bound:
        raise ArithmeticOverflow(op, a, b)
    return result


def checked_add(a: int, b: int, bound: int = U128_MAX) -> int:
    return _checked(a + b, "+", a, b, bound)


def checked_sub(a: int, b: int) -> int:
    return _checked(a - b, "-", a, b)


def checked_mul(a: int, b: int) -> int:
    return _checked(a * b, "*", a, b)


def mul_div(a: int, b: int, c: int, bound: int = U128_MAX) -> int:
    """`a * b // c` with only the quotient checked against `bound`."""
    return _checked(a * b // c, "*/", a * b, c, bound)


def per_share(amount: int, total_shares: int, precision: int) -> int:
    """Fixed-point `amount / total_shares`; zero when nobody holds shares."""
    if total_shares == 0:
        return 0
    return mul_div(amount, precision, total_shares, PER_SHARE_MAX)


def next_numbered_path(base: Path, extension: str = ".csv") -> Path:
    """
    Return the first path of the form `{stem}_{n}{extension}` that does not exist yet.
    Ensures the parent directory exists before returning the candidate.
    """
    base = Path(base)
    directory = base.parent if base.parent != Path("") else Path(".")
    directory.mkdir(parents=True, exist_ok=True)
    if base.suffix:
        stem = base.stem
        ext = base.suffix
    else:
        stem = base.name
        ext = extension
    idx = 0
    while True:
        candidate = directory / f"{stem}_{idx}{ext}"
        if not candidate.exists():
            return candidate
        idx += 1


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class RewardsConfig:
    """Deployment-time parameters of one pool's rewards engine."""
    page_size: int = PAGE_SIZE
    max_level: int = MAX_LEVEL
    precision: int = REWARD_PRECISION

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"'{f.name}' must be an integer, got {value!r}")
        if self.page_size < 2:
            raise ValueError("page_size must be at least 2.")
        if self.max_level < 1:
            raise ValueError("max_level must be at least 1.")
        if self.precision < 1:
            raise ValueError("precision must be positive.")


def _read_yaml_mapping(config_path: Path) -> Dict[str, Any]:
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Missing configuration file: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        config_data = yaml.safe_load(handle)

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return config_data


def load_rewards_config(config_path: Path) -> RewardsConfig:
    """
    Load engine parameters from the `rewards` mapping of a YAML file.

    Keys that are left out fall back to the module defaults; unknown keys are rejected.
    A file without a `rewards` section yields the defaults.
    """
    config_data = _read_yaml_mapping(config_path)

    section = config_data.get("rewards", {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ValueError(f"'rewards' section must be a mapping in {config_path}")

    expected_keys = {f.name for f in fields(RewardsConfig)}
    extra_keys = sorted(set(section) - expected_keys)
    if extra_keys:
        raise ValueError(f"Unexpected keys in 'rewards' section: {extra_keys}")

    return RewardsConfig(**section)


def load_simulation_parameters(config_path: Path, simulate_func=None) -> Tuple[str, Dict[str, Any]]:
    """
    Load simulation parameters from a YAML configuration file.

    The configuration must contain a `simulate` mapping with every parameter
    accepted by `simulate`. An optional top-level `scenario` key labels the
    outputs; without it the label is "default".
    """
    if simulate_func is None:
        from .run import simulate as simulate_func

    config_data = _read_yaml_mapping(config_path)

    params = config_data.get("simulate")
    if not isinstance(params, dict):
        raise ValueError(f"'simulate' section missing in {config_path}")
    params = dict(params)

    signature = inspect.signature(simulate_func)
    expected_keys = set(signature.parameters)
    missing_keys = [name for name in signature.parameters if name not in params]
    if missing_keys:
        raise ValueError(f"Missing simulate parameters in {config_path}: {missing_keys}")

    extra_keys = sorted(set(params) - expected_keys)
    if extra_keys:
        raise ValueError(f"Unexpected keys in 'simulate' section: {extra_keys}")

    scenario_label = config_data.get("scenario", "default")
    return str(scenario_label), params
