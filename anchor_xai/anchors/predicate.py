import math
import operator
from dataclasses import dataclass, field

import numpy as np
import pandas as pd


OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


class MissingFeatureError(KeyError):
    """Raised when a referenced feature column is absent from the data."""

    def __init__(self, missing, available=None):
        self.missing = list(missing)
        self.available = list(available) if available is not None else None
        msg = f"missing feature column(s): {self.missing}"
        if self.available is not None:
            msg += f" | available: {self.available}"
        super().__init__(msg)

    def __str__(self) -> str:
        return self.args[0]


def _check_columns(data: pd.DataFrame, features) -> None:
    missing = [f for f in features if f not in data.columns]
    if missing:
        raise MissingFeatureError(missing, data.columns)


@dataclass(frozen=True)
class Predicate:
    feature: str
    op: str
    value: float

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unknown operator '{self.op}'. Choose one of {list(OPERATORS)}.")

    def mask(self, data: pd.DataFrame) -> np.ndarray:
        _check_columns(data, [self.feature])
        col = data[self.feature].to_numpy()
        return np.asarray(OPERATORS[self.op](col, self.value), dtype=bool)

    def holds(self, row) -> bool:
        if self.feature not in row:
            raise MissingFeatureError([self.feature])
        return bool(OPERATORS[self.op](row[self.feature], self.value))

    def __str__(self) -> str:
        return f"{self.feature} {self.op} {self.value:.2f}"


@dataclass(frozen=True)
class Anchor:
    """
    Conjunction of predicates describing an axis-aligned region.

    Anchors are values: `extend` returns a new anchor and leaves this one
    untouched. Feature names are validated only when the anchor is evaluated.
    """

    predicates: tuple = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "predicates", tuple(self.predicates))

    def extend(self, predicate: Predicate) -> "Anchor":
        return Anchor(self.predicates + (predicate,))

    @property
    def features(self) -> list[str]:
        seen = []
        for p in self.predicates:
            if p.feature not in seen:
                seen.append(p.feature)
        return seen

    def mask(self, data: pd.DataFrame) -> np.ndarray:
        n = len(data)
        if not self.predicates:
            return np.ones(n, dtype=bool)
        _check_columns(data, self.features)
        return np.logical_and.reduce([p.mask(data) for p in self.predicates])

    def holds(self, row) -> bool:
        return all(p.holds(row) for p in self.predicates)

    def bounds(self, feature: str, low: float = -math.inf, high: float = math.inf) -> tuple[float, float]:
        lower, upper = float(low), float(high)
        for p in self.predicates:
            if p.feature != feature:
                continue
            if p.op in (">", ">="):
                lower = max(lower, float(p.value))
            elif p.op in ("<", "<="):
                upper = min(upper, float(p.value))
            elif p.op == "==":
                lower = max(lower, float(p.value))
                upper = min(upper, float(p.value))
        return lower, upper

    @classmethod
    def from_bounds(cls, bounds: dict) -> "Anchor":
        preds = []
        for feature, (lower, upper) in bounds.items():
            if lower is not None and np.isfinite(lower):
                preds.append(Predicate(feature, ">", float(lower)))
            if upper is not None and np.isfinite(upper):
                preds.append(Predicate(feature, "<=", float(upper)))
        return cls(tuple(preds))

    def __len__(self) -> int:
        return len(self.predicates)

    def __iter__(self):
        return iter(self.predicates)

    def __str__(self) -> str:
        if not self.predicates:
            return "any values"
        return " AND ".join(str(p) for p in self.predicates)
