from dataclasses import dataclass

import numpy as np
import pandas as pd

from .predicate import Anchor


@dataclass(frozen=True)
class AnchorScore:
    precision: float
    coverage: float
    n_inside: int
    n_samples: int

    @property
    def is_empty(self) -> bool:
        return self.n_inside == 0


def precision(anchor: Anchor, samples: pd.DataFrame, predictions: np.ndarray, target: int) -> float:
    """Fraction of samples inside `anchor` predicted as `target` (0.0 when none fall inside)."""
    mask = anchor.mask(samples)
    if not mask.any():
        return 0.0
    return float((np.asarray(predictions)[mask] == target).mean())


def coverage(anchor: Anchor, samples: pd.DataFrame) -> float:
    if len(samples) == 0:
        return 0.0
    return float(anchor.mask(samples).mean())


def volume_coverage(anchor: Anchor, domain: dict) -> float:
    # Box volume relative to the domain; unconstrained features contribute 1.
    ratio = 1.0
    for feature, (low, high) in domain.items():
        width = float(high) - float(low)
        if width <= 0:
            continue
        lower, upper = anchor.bounds(feature, low, high)
        lower = min(max(lower, low), high)
        upper = min(max(upper, low), high)
        ratio *= max(upper - lower, 0.0) / width
    return float(np.clip(ratio, 0.0, 1.0))


def score_anchor(
    anchor: Anchor,
    samples: pd.DataFrame,
    predictions: np.ndarray,
    target: int,
    domain: dict | None = None,
) -> AnchorScore:
    mask = anchor.mask(samples)
    n_inside = int(mask.sum())
    n_samples = int(len(samples))
    if n_inside == 0:
        prec = 0.0
    else:
        prec = float((np.asarray(predictions)[mask] == target).mean())
    if domain is not None:
        cov = volume_coverage(anchor, domain)
    else:
        cov = n_inside / n_samples if n_samples else 0.0
    return AnchorScore(precision=prec, coverage=float(cov), n_inside=n_inside, n_samples=n_samples)
