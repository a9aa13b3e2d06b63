import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from anchor_xai.anchors.perturbation import UniformPerturbation
from anchor_xai.search.base import AnchorProblem


def quadrant_rule(data: pd.DataFrame) -> np.ndarray:
    """Black box: class 1 inside the square x1 > 0.5, x2 > 0.5 of the unit square."""
    return ((data["x1"] > 0.5) & (data["x2"] > 0.5)).to_numpy().astype(int)


def threshold_rule(data: pd.DataFrame) -> np.ndarray:
    """Black box: class 1 when x1 > 0.3."""
    return (data["x1"] > 0.3).to_numpy().astype(int)


@pytest.fixture
def unit_square():
    return UniformPerturbation({"x1": (0.0, 1.0), "x2": (0.0, 1.0)})


@pytest.fixture
def quadrant_problem(unit_square):
    instance = pd.Series({"x1": 0.8, "x2": 0.8})
    return AnchorProblem(
        instance,
        quadrant_rule,
        unit_square,
        precision_threshold=0.95,
        n_samples=2000,
        max_cutpoints=12,
        seed=0,
    )


@pytest.fixture
def line_problem():
    perturbation = UniformPerturbation({"x1": (0.0, 1.0)})
    instance = pd.Series({"x1": 0.7})
    return AnchorProblem(
        instance,
        threshold_rule,
        perturbation,
        precision_threshold=0.95,
        n_samples=1500,
        max_cutpoints=20,
        seed=1,
    )
