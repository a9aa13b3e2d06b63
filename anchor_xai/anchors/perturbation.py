import numpy as np
import pandas as pd

from .predicate import Anchor, MissingFeatureError


PERTURBATION_CHOICES = ("uniform", "gaussian", "bootstrap")


class PerturbationDistribution:
    """
    Sampling distribution for synthetic neighbours of a local instance.

    Subclasses implement `sample` and `sample_within`; both return a data frame
    with one column per feature in `features`.
    """

    def __init__(self, domain: dict):
        self.domain = {f: (float(lo), float(hi)) for f, (lo, hi) in domain.items()}
        for f, (lo, hi) in self.domain.items():
            if hi < lo:
                raise ValueError(f"Empty domain for feature '{f}': [{lo}, {hi}]")

    @property
    def features(self) -> list[str]:
        return list(self.domain)

    def _anchor_box(self, anchor: Anchor) -> dict:
        box = {}
        for f, (lo, hi) in self.domain.items():
            lower, upper = anchor.bounds(f, lo, hi)
            box[f] = (max(lower, lo), min(upper, hi))
        return box

    def sample(self, n: int, rng: np.random.Generator) -> pd.DataFrame:
        raise NotImplementedError

    def sample_within(self, anchor: Anchor, n: int, rng: np.random.Generator) -> pd.DataFrame:
        raise NotImplementedError


class UniformPerturbation(PerturbationDistribution):
    def sample(self, n: int, rng: np.random.Generator) -> pd.DataFrame:
        cols = {f: rng.uniform(lo, hi, size=n) for f, (lo, hi) in self.domain.items()}
        return pd.DataFrame(cols, columns=self.features)

    def sample_within(self, anchor: Anchor, n: int, rng: np.random.Generator) -> pd.DataFrame:
        box = self._anchor_box(anchor)
        if any(hi < lo for lo, hi in box.values()):
            return pd.DataFrame(columns=self.features, dtype=float)
        cols = {f: rng.uniform(lo, hi, size=n) for f, (lo, hi) in box.items()}
        out = pd.DataFrame(cols, columns=self.features)
        # open/closed ends and non-box predicates (!=) are enforced by filtering
        return out[anchor.mask(out)].reset_index(drop=True)


class GaussianPerturbation(PerturbationDistribution):
    def __init__(self, center, scale, domain: dict | None = None, max_rounds: int = 20):
        self.center = pd.Series(center, dtype=float)
        self.scale = pd.Series(scale, dtype=float).reindex(self.center.index)
        if self.scale.isna().any():
            raise MissingFeatureError(list(self.scale.index[self.scale.isna()]))
        if (self.scale < 0).any():
            raise ValueError("scale must be non-negative")
        if domain is None:
            domain = {f: (self.center[f] - 4.0 * self.scale[f], self.center[f] + 4.0 * self.scale[f])
                      for f in self.center.index}
        super().__init__(domain)
        self.max_rounds = int(max_rounds)

    def sample(self, n: int, rng: np.random.Generator) -> pd.DataFrame:
        cols = {}
        for f, (lo, hi) in self.domain.items():
            cols[f] = np.clip(rng.normal(self.center[f], self.scale[f], size=n), lo, hi)
        return pd.DataFrame(cols, columns=self.features)

    def sample_within(self, anchor: Anchor, n: int, rng: np.random.Generator) -> pd.DataFrame:
        # Rejection sampling; may return fewer than n rows for low-mass anchors.
        kept = []
        n_kept = 0
        for _ in range(self.max_rounds):
            draw = self.sample(max(n, 64), rng)
            draw = draw[anchor.mask(draw)]
            kept.append(draw)
            n_kept += len(draw)
            if n_kept >= n:
                break
        out = pd.concat(kept, ignore_index=True) if kept else pd.DataFrame(columns=self.features)
        return out.iloc[:n].reset_index(drop=True)


class BootstrapPerturbation(PerturbationDistribution):
    def __init__(self, data: pd.DataFrame):
        if len(data) == 0:
            raise ValueError("bootstrap perturbation needs at least one reference row")
        self.data = data.reset_index(drop=True)
        domain = {c: (float(self.data[c].min()), float(self.data[c].max())) for c in self.data.columns}
        super().__init__(domain)

    def sample(self, n: int, rng: np.random.Generator) -> pd.DataFrame:
        idx = rng.choice(len(self.data), size=n, replace=True)
        return self.data.iloc[idx].reset_index(drop=True)

    def sample_within(self, anchor: Anchor, n: int, rng: np.random.Generator) -> pd.DataFrame:
        covered = np.where(anchor.mask(self.data))[0]
        if covered.size == 0:
            return self.data.iloc[[]].reset_index(drop=True)
        idx = rng.choice(covered, size=n, replace=True)
        return self.data.iloc[idx].reset_index(drop=True)


def make_perturbation(
    kind: str,
    instance: pd.Series,
    data: pd.DataFrame,
    features: list[str] | None = None,
    scale_factor: float = 1.0,
) -> PerturbationDistribution:
    """
    Build a perturbation distribution around `instance` from reference `data`.

    - uniform:   feature-wise [min, max] of the data
    - gaussian:  centred on the instance with the data's standard deviation
    - bootstrap: rows of the data resampled with replacement
    """
    features = list(features) if features is not None else list(data.columns)
    missing = [f for f in features if f not in data.columns or f not in instance.index]
    if missing:
        raise MissingFeatureError(missing, data.columns)
    ref = data[features]
    domain = {f: (float(ref[f].min()), float(ref[f].max())) for f in features}
    if kind == "uniform":
        return UniformPerturbation(domain)
    elif kind == "gaussian":
        std = ref.std(ddof=0).replace(0.0, 1.0) * float(scale_factor)
        return GaussianPerturbation(instance[features].astype(float), std, domain=domain)
    elif kind == "bootstrap":
        return BootstrapPerturbation(ref)
    else:
        raise ValueError(f"Unknown perturbation '{kind}'. Choose one of {list(PERTURBATION_CHOICES)}.")
