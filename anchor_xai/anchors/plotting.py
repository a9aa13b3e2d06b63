import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.patches import Rectangle

sns.set_theme(style="whitegrid")
sns.set_palette("bright")


def _finish(fig, show: bool, save_path):
    plt.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, dpi=150)
    if show:
        plt.show()
    else:
        plt.close(fig)
    return fig


def _clipped_bounds(anchor, feature, domain):
    lo, hi = domain[feature]
    lower, upper = anchor.bounds(feature, lo, hi)
    return max(lower, lo), min(upper, hi)


def _agreement_labels(problem):
    return np.where(problem.predictions == problem.target, "same as instance", "different")


def plot_anchor_1d(problem, result, feature: str | None = None, ax=None, show: bool = False, save_path=None):
    feature = feature or problem.features[0]
    fig = None
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 3))
    rng = np.random.default_rng(0)
    jitter = rng.uniform(-0.4, 0.4, size=len(problem.samples))
    sns.scatterplot(x=problem.samples[feature].to_numpy(), y=jitter, hue=_agreement_labels(problem),
                    s=10, alpha=0.6, ax=ax)
    lower, upper = _clipped_bounds(result.anchor, feature, problem.perturbation.domain)
    ax.axvspan(lower, upper, color="tab:green", alpha=0.2, label="anchor")
    ax.axvline(float(problem.instance[feature]), color="black", linestyle="--", label="instance")
    ax.set_yticks([])
    ax.set_xlabel(feature)
    ax.set_title(f"{result.strategy}: precision={result.precision:.3f}, coverage={result.coverage:.3f}")
    ax.legend(loc="upper right", fontsize=8)
    if fig is None:
        return ax.figure
    return _finish(fig, show, save_path)


def plot_anchor_2d(problem, result, features: list[str] | None = None, ax=None, show: bool = False, save_path=None):
    features = list(features or problem.features[:2])
    if len(features) != 2:
        raise ValueError(f"plot_anchor_2d needs two features, got {features}")
    fx, fy = features
    fig = None
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 5))
    sns.scatterplot(x=problem.samples[fx].to_numpy(), y=problem.samples[fy].to_numpy(),
                    hue=_agreement_labels(problem), s=10, alpha=0.6, ax=ax)
    x0, x1 = _clipped_bounds(result.anchor, fx, problem.perturbation.domain)
    y0, y1 = _clipped_bounds(result.anchor, fy, problem.perturbation.domain)
    ax.add_patch(Rectangle((x0, y0), x1 - x0, y1 - y0, fill=False, edgecolor="tab:green", linewidth=2, label="anchor"))
    ax.scatter([float(problem.instance[fx])], [float(problem.instance[fy])], marker="*", s=200, color="black",
               label="instance", zorder=5)
    ax.set_xlabel(fx)
    ax.set_ylabel(fy)
    ax.set_title(f"{result.strategy}: precision={result.precision:.3f}, coverage={result.coverage:.3f}")
    ax.legend(loc="upper right", fontsize=8)
    if fig is None:
        return ax.figure
    return _finish(fig, show, save_path)


def plot_precision_coverage_grid(grid: pd.DataFrame, feature: str, show: bool = False, save_path=None):
    """Heatmaps of precision and coverage over the (lower, upper) bounds of one feature in a brute-force grid."""
    lo_col, hi_col = f"{feature}_lower", f"{feature}_upper"
    g = grid.copy()
    g[lo_col] = g[lo_col].astype(float).fillna(-np.inf).round(3)
    g[hi_col] = g[hi_col].astype(float).fillna(np.inf).round(3)
    fig, axes = plt.subplots(1, 2, figsize=(14, 5))
    for ax, value in zip(axes, ("precision", "coverage")):
        # other features are marginalised by the best value over their bounds
        table = g.pivot_table(index=lo_col, columns=hi_col, values=value, aggfunc="max")
        sns.heatmap(table, ax=ax, cmap="viridis", vmin=0.0, vmax=1.0)
        ax.set_title(f"{value} by {feature} bounds")
        ax.set_xlabel(f"{feature} upper")
        ax.set_ylabel(f"{feature} lower")
    return _finish(fig, show, save_path)


def plot_bandit_trace(result, show: bool = False, save_path=None):
    hist = pd.DataFrame(result.history)
    fig, axes = plt.subplots(1, 2, figsize=(12, 4))
    if not hist.empty:
        axes[0].plot(hist["round"], hist["precision"], label="precision")
        axes[0].plot(hist["round"], hist["coverage"], label="coverage")
        axes[0].plot(hist["round"], hist["best_coverage"], label="best coverage")
        pulls = hist.groupby(["feature", "direction"]).size().rename("pulls").reset_index()
        pulls["arm"] = pulls["feature"].astype(str) + ":" + pulls["direction"]
        sns.barplot(data=pulls, x="pulls", y="arm", ax=axes[1])
    axes[0].set_title("Bandit search trace")
    axes[0].set_xlabel("Round")
    axes[0].set_ylabel("Value")
    axes[0].legend()
    axes[1].set_title("Pulls per arm")
    return _finish(fig, show, save_path)
