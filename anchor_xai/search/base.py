"""
Shared contract for the anchor search strategies.

An `AnchorProblem` fixes everything the strategies need to agree on: the
local instance, the black box, one seeded pool of perturbation samples with
their predictions, the searched features and their cut-points, and the
feasibility rule. Strategies only decide which anchors to score.
"""

from dataclasses import dataclass, field
from typing import Callable

import numpy as np
import pandas as pd

from ..anchors.cutpoints import CUT_METHODS, candidate_cutpoints
from ..anchors.metrics import AnchorScore, score_anchor
from ..anchors.perturbation import PerturbationDistribution
from ..anchors.predicate import Anchor, MissingFeatureError


COVERAGE_MODES = ("samples", "volume")


@dataclass
class SearchResult:
    strategy: str
    anchor: Anchor
    precision: float
    coverage: float
    n_inside: int
    feasible: bool
    n_evaluations: int
    history: list = field(default_factory=list)
    grid: pd.DataFrame | None = None

    def as_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "anchor": [str(p) for p in self.anchor],
            "precision": float(self.precision),
            "coverage": float(self.coverage),
            "n_inside": int(self.n_inside),
            "feasible": bool(self.feasible),
            "n_evaluations": int(self.n_evaluations),
        }


class AnchorProblem:
    def __init__(
        self,
        instance: pd.Series,
        predict_fn: Callable[[pd.DataFrame], np.ndarray],
        perturbation: PerturbationDistribution,
        features: list[str] | None = None,
        precision_threshold: float = 0.95,
        n_samples: int = 2000,
        min_support: int = 10,
        cut_method: str = "midpoint",
        max_cutpoints: int | None = None,
        coverage_mode: str = "samples",
        seed: int = 42,
    ):
        if not (0.0 < float(precision_threshold) <= 1.0):
            raise ValueError(f"precision_threshold must be in (0, 1], got {precision_threshold}")
        if int(n_samples) <= 0:
            raise ValueError(f"n_samples must be positive, got {n_samples}")
        if int(min_support) < 1:
            raise ValueError(f"min_support must be >= 1, got {min_support}")
        if cut_method not in CUT_METHODS:
            raise ValueError(f"Unknown cut method '{cut_method}'. Choose one of {list(CUT_METHODS)}.")
        if coverage_mode not in COVERAGE_MODES:
            raise ValueError(f"Unknown coverage mode '{coverage_mode}'. Choose one of {list(COVERAGE_MODES)}.")

        self.instance = pd.Series(instance)
        self.predict_fn = predict_fn
        self.perturbation = perturbation
        self.features = list(features) if features is not None else list(perturbation.features)
        if not self.features:
            raise ValueError("at least one feature must be searched")
        missing = [f for f in self.features if f not in perturbation.domain or f not in self.instance.index]
        if missing:
            raise MissingFeatureError(missing, perturbation.features)

        self.precision_threshold = float(precision_threshold)
        self.n_samples = int(n_samples)
        self.min_support = int(min_support)
        self.cut_method = cut_method
        self.max_cutpoints = max_cutpoints
        self.coverage_mode = coverage_mode
        self.seed = int(seed)
        self.rng = np.random.default_rng(seed)

        self.samples = perturbation.sample(self.n_samples, self.rng)
        self.predictions = np.asarray(predict_fn(self.model_input(self.samples))).ravel()
        instance_frame = pd.DataFrame([self.instance.to_numpy()], columns=self.instance.index)
        self.target = np.asarray(predict_fn(self.model_input(instance_frame))).ravel()[0]
        self.domain = {f: perturbation.domain[f] for f in self.features}
        self.n_evaluations = 0
        self._cuts = {}

    def model_input(self, samples: pd.DataFrame) -> pd.DataFrame:
        """Fill features the perturbation does not vary with the instance's values."""
        out = samples.copy()
        for col in self.instance.index:
            if col not in out.columns:
                out[col] = self.instance[col]
        cols = list(self.instance.index) + [c for c in out.columns if c not in self.instance.index]
        return out[cols]

    def score(self, anchor: Anchor, count: bool = True) -> AnchorScore:
        if count:
            self.n_evaluations += 1
        domain = self.domain if self.coverage_mode == "volume" else None
        return score_anchor(anchor, self.samples, self.predictions, self.target, domain=domain)

    def is_feasible(self, score: AnchorScore) -> bool:
        return bool(score.precision >= self.precision_threshold and score.n_inside >= self.min_support)

    def rank_key(self, score: AnchorScore) -> tuple:
        # Feasible anchors rank by coverage then precision; the rest by precision then coverage.
        if self.is_feasible(score):
            return (1, score.coverage, score.precision)
        return (0, score.precision, score.coverage)

    def cutpoints(self, feature: str) -> tuple[np.ndarray, np.ndarray]:
        if feature not in self._cuts:
            self._cuts[feature] = candidate_cutpoints(
                self.samples[feature].to_numpy(),
                float(self.instance[feature]),
                method=self.cut_method,
                max_cutpoints=self.max_cutpoints,
            )
        return self._cuts[feature]

    def holdout_precision(self, anchor: Anchor, n: int = 500, seed: int | None = None) -> float | None:
        """Precision on fresh samples drawn inside `anchor`; None when the anchor holds no probability mass."""
        rng = np.random.default_rng(self.seed + 1 if seed is None else seed)
        inside = self.perturbation.sample_within(anchor, int(n), rng)
        if len(inside) == 0:
            return None
        preds = np.asarray(self.predict_fn(self.model_input(inside))).ravel()
        return float((preds == self.target).mean())

    def result(self, strategy: str, anchor: Anchor, score: AnchorScore, history=None, grid=None,
               start: int = 0) -> SearchResult:
        # evaluations counted since `start`
        return SearchResult(
            strategy=strategy,
            anchor=anchor,
            precision=score.precision,
            coverage=score.coverage,
            n_inside=score.n_inside,
            feasible=self.is_feasible(score),
            n_evaluations=self.n_evaluations - int(start),
            history=list(history) if history is not None else [],
            grid=grid,
        )
