import numpy as np
import pandas as pd
from sklearn.datasets import load_breast_cancer, make_circles, make_classification, make_moons

from .anchors.predicate import MissingFeatureError


DATASET_CHOICES = ("breast_cancer", "synthetic", "moons", "circles")

# Dataset-specific presets for tunable parameters
DATASET_PRESETS = {
    "breast_cancer": {
        "features": ["mean radius", "mean texture"],
        "model": "forest",
        "perturbation": "bootstrap",
        "precision_threshold": 0.95,
        "n_samples": 2000,
        "max_cutpoints": 16,
        "bandit_rounds": 800,
    },
    "synthetic": {
        "features": ["f0", "f1"],
        "model": "mlp",
        "perturbation": "uniform",
        "precision_threshold": 0.9,
        "n_samples": 3000,
        "max_cutpoints": 16,
        "bandit_rounds": 1000,
    },
    "moons": {
        "features": ["x1", "x2"],
        "model": "mlp",
        "perturbation": "uniform",
        "precision_threshold": 0.95,
        "n_samples": 3000,
        "max_cutpoints": 16,
        "bandit_rounds": 1000,
    },
    "circles": {
        "features": ["x1", "x2"],
        "model": "forest",
        "perturbation": "uniform",
        "precision_threshold": 0.95,
        "n_samples": 3000,
        "max_cutpoints": 16,
        "bandit_rounds": 1000,
    },
}


def load_dataset(dataset: str, seed: int = 42, n_samples: int = 2000):
    """Return (X, y, feature_names, class_names) with X a DataFrame and y normalised to 0..C-1."""
    if dataset == "breast_cancer":
        ds = load_breast_cancer()
        X = ds.data.astype(np.float64)
        y = ds.target.astype(int)
        feature_names = list(ds.feature_names)
    elif dataset == "synthetic":
        X, y = make_classification(n_samples=n_samples, n_features=6, n_informative=4, n_redundant=0,
                                   n_classes=2, random_state=seed)
        feature_names = [f"f{i}" for i in range(X.shape[1])]
    elif dataset == "moons":
        X, y = make_moons(n_samples=n_samples, noise=0.2, random_state=seed)
        feature_names = ["x1", "x2"]
    elif dataset == "circles":
        X, y = make_circles(n_samples=n_samples, noise=0.1, factor=0.5, random_state=seed)
        feature_names = ["x1", "x2"]
    else:
        raise ValueError(f"Unknown dataset '{dataset}'. Choose one of {list(DATASET_CHOICES)}.")

    # Normalize class labels to 0..C-1 and prepare class names aligned with indices
    unique_classes = np.unique(y)
    if dataset == "breast_cancer":
        class_names = [str(load_breast_cancer().target_names[c]) for c in unique_classes]
    else:
        class_names = [f"class_{int(c)}" for c in unique_classes]
    class_to_idx = {c: i for i, c in enumerate(unique_classes)}
    y = np.array([class_to_idx[c] for c in y], dtype=int)

    return pd.DataFrame(X, columns=feature_names), y, feature_names, class_names


def load_csv(path, feature_columns: list[str], target_column: str):
    """
    Load a CSV with named feature columns and a class column.

    Halts with MissingFeatureError when any referenced column is absent, so
    anchors are never built over features the data does not have.
    """
    df = pd.read_csv(path)
    wanted = list(feature_columns) + [target_column]
    missing = [c for c in wanted if c not in df.columns]
    if missing:
        raise MissingFeatureError(missing, df.columns)
    df = df.dropna(subset=wanted)
    X = df[list(feature_columns)].astype(float).reset_index(drop=True)
    unique_classes = np.unique(df[target_column].to_numpy())
    class_names = [str(c) for c in unique_classes]
    class_to_idx = {c: i for i, c in enumerate(unique_classes)}
    y = np.array([class_to_idx[c] for c in df[target_column]], dtype=int)
    return X, y, list(feature_columns), class_names


# Defaults for user CSVs; searched features always come from the caller
CSV_PRESET = {
    "features": None,
    "model": "forest",
    "perturbation": "bootstrap",
    "precision_threshold": 0.95,
    "n_samples": 2000,
    "max_cutpoints": 16,
    "bandit_rounds": 800,
}
