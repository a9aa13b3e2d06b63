import numpy as np


CUT_METHODS = ("midpoint", "quantile")


def midpoint_cutpoints(values) -> np.ndarray:
    v = np.unique(np.asarray(values, dtype=float))
    v = v[np.isfinite(v)]
    if v.size < 2:
        return np.array([], dtype=float)
    return 0.5 * (v[:-1] + v[1:])


def thin_cutpoints(cuts: np.ndarray, max_cutpoints: int | None) -> np.ndarray:
    cuts = np.asarray(cuts, dtype=float)
    if max_cutpoints is None or max_cutpoints <= 0 or cuts.size <= max_cutpoints:
        return cuts
    # evenly spaced positions in rank order keep the empirical shape
    pos = np.linspace(0, cuts.size - 1, int(max_cutpoints))
    return np.unique(cuts[np.round(pos).astype(int)])


# --- Discretization helpers ---
def compute_quantile_bins(X: np.ndarray, disc_perc: list[int]) -> list[np.ndarray]:
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    edges_per_feature: list[np.ndarray] = []
    for j in range(X.shape[1]):
        edges = np.unique(np.percentile(X[:, j], disc_perc))
        edges_per_feature.append(edges)
    return edges_per_feature


def discretize_by_edges(X: np.ndarray, edges_per_feature: list[np.ndarray], right: bool = False) -> np.ndarray:
    """
    Bin index of every value against its feature's edges.

    With `right=False` bin i holds edges[i-1] <= x < edges[i]; with
    `right=True` it holds edges[i-1] < x <= edges[i], the half-open
    convention of `feature > lower AND feature <= upper` anchors.
    """
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        X = X.reshape(-1, 1)
    X_bins = np.zeros_like(X, dtype=np.int32)
    for j, edges in enumerate(edges_per_feature):
        if edges.size == 0:
            X_bins[:, j] = 0
        else:
            X_bins[:, j] = np.digitize(X[:, j], edges, right=right)
    return X_bins


def candidate_cutpoints(
    values,
    instance_value: float,
    method: str = "midpoint",
    max_cutpoints: int | None = None,
    disc_perc: list[int] | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Split cut-points for one feature around the instance.

    Returns (lower, upper): lower candidates lie strictly below the instance
    value (usable as `feature > c`), upper candidates at or above it (usable
    as `feature <= c`). Both sorted ascending.
    """
    if method == "midpoint":
        cuts = midpoint_cutpoints(values)
    elif method == "quantile":
        perc = disc_perc if disc_perc is not None else list(range(5, 100, 5))
        cuts = compute_quantile_bins(np.asarray(values, dtype=float), perc)[0]
    else:
        raise ValueError(f"Unknown cut method '{method}'. Choose one of {list(CUT_METHODS)}.")
    cuts = thin_cutpoints(cuts, max_cutpoints)
    x = float(instance_value)
    lower = cuts[cuts < x]
    upper = cuts[cuts >= x]
    return lower, upper
