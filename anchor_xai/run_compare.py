import argparse
import os

import matplotlib.pyplot as plt
from sklearn.model_selection import train_test_split

from .anchors.perturbation import PERTURBATION_CHOICES, make_perturbation
from .anchors.plotting import plot_anchor_1d, plot_anchor_2d, plot_bandit_trace, plot_precision_coverage_grid
from .datasets import CSV_PRESET, DATASET_CHOICES, DATASET_PRESETS, load_csv, load_dataset
from .network import DEVICE_CHOICES, MODEL_CHOICES, fit_black_box
from .search.bandit import bandit_search
from .search.base import COVERAGE_MODES, AnchorProblem
from .search.brute_force import brute_force_search
from .search.greedy import greedy_search
from .search.reference import explain_with_anchor_exp


STRATEGY_CHOICES = ("brute_force", "greedy", "bandit", "anchor_exp")
DEFAULT_STRATEGIES = ("brute_force", "greedy", "bandit")


def parse_nullable_int(v: str | None) -> int | None:
    if v is None:
        return None
    s = str(v).strip().lower()
    if s in ("none", "null", "nan", ""):  # accept common None spellings
        return None
    return int(v)


def parse_nullable_float(v: str | None) -> float | None:
    if v is None:
        return None
    s = str(v).strip().lower()
    if s in ("none", "null", "nan", ""):
        return None
    return float(v)


def run_strategy(name: str, problem: AnchorProblem, n_jobs: int = 1, bandit_rounds: int = 1000,
                 class_names=None, verbose: bool = True):
    if name == "brute_force":
        return brute_force_search(problem, n_jobs=n_jobs, verbose=verbose)
    elif name == "greedy":
        return greedy_search(problem, verbose=verbose)
    elif name == "bandit":
        return bandit_search(problem, n_rounds=bandit_rounds, verbose=verbose)
    elif name == "anchor_exp":
        return explain_with_anchor_exp(problem, class_names=class_names, verbose=verbose)
    raise ValueError(f"Unknown strategy '{name}'. Choose one of {list(STRATEGY_CHOICES)}.")


def _plot_results(problem, results, show_plots: bool, save_dir):
    n = len(results)
    fig, axes = plt.subplots(1, n, figsize=(6 * n, 5), squeeze=False)
    for ax, res in zip(axes[0], results.values()):
        if len(problem.features) == 1:
            plot_anchor_1d(problem, res, ax=ax)
        else:
            plot_anchor_2d(problem, res, features=problem.features[:2], ax=ax)
    plt.tight_layout()
    if save_dir is not None:
        fig.savefig(os.path.join(save_dir, "anchors.png"), dpi=150)
    if show_plots:
        plt.show()
    else:
        plt.close(fig)

    brute = results.get("brute_force")
    if brute is not None and brute.grid is not None:
        plot_precision_coverage_grid(
            brute.grid, problem.features[0], show=show_plots,
            save_path=os.path.join(save_dir, "brute_force_grid.png") if save_dir is not None else None,
        )
    bandit = results.get("bandit")
    if bandit is not None:
        plot_bandit_trace(
            bandit, show=show_plots,
            save_path=os.path.join(save_dir, "bandit_trace.png") if save_dir is not None else None,
        )


def run_compare(
    dataset: str = "moons",
    csv_path: str | None = None,
    target_column: str | None = None,
    seed: int = 42,
    model: str | None = None,
    features: list[str] | None = None,
    instance_index: int = 0,
    precision_threshold: float | None = None,
    perturbation: str | None = None,
    n_samples: int | None = None,
    max_cutpoints: int | None = None,
    min_support: int = 10,
    cut_method: str = "midpoint",
    coverage_mode: str = "samples",
    strategies=DEFAULT_STRATEGIES,
    n_jobs: int = 1,
    bandit_rounds: int | None = None,
    epochs: int = 20,
    device: str = "auto",
    show_plots: bool = True,
    save_dir: str | None = None,
    verbose: bool = True,
):
    """Fit a black box, pick one test instance and compare the anchor search strategies on it."""
    if csv_path is not None:
        if target_column is None or not features:
            raise ValueError("A CSV source needs a target column and the features to search.")
        p = CSV_PRESET
    elif dataset in DATASET_PRESETS:
        p = DATASET_PRESETS[dataset]
    else:
        raise ValueError(f"Unknown dataset '{dataset}'. Choose one of {list(DATASET_CHOICES)}.")

    # Resolve None to dataset defaults
    model = str(model if model is not None else p["model"])
    features = list(features if features is not None else p["features"])
    precision_threshold = float(precision_threshold if precision_threshold is not None else p["precision_threshold"])
    perturbation = str(perturbation if perturbation is not None else p["perturbation"])
    n_samples = int(n_samples if n_samples is not None else p["n_samples"])
    max_cutpoints = int(max_cutpoints if max_cutpoints is not None else p["max_cutpoints"])
    bandit_rounds = int(bandit_rounds if bandit_rounds is not None else p["bandit_rounds"])
    for name in strategies:
        if name not in STRATEGY_CHOICES:
            raise ValueError(f"Unknown strategy '{name}'. Choose one of {list(STRATEGY_CHOICES)}.")

    if csv_path is not None:
        # absent feature or target columns halt here with MissingFeatureError
        X, y, feature_names, class_names = load_csv(csv_path, features, target_column)
        source = os.path.basename(str(csv_path))
    else:
        X, y, feature_names, class_names = load_dataset(dataset, seed)
        source = dataset
    if verbose:
        print(f"[data] {source} | rows={len(X)} | classes ({len(class_names)}): {class_names} | feature_names ({len(feature_names)}): {feature_names}")
        print(f"[auto] using dataset-specific defaults: model={model}, features={features}, threshold={precision_threshold}, perturbation={perturbation}, n_samples={n_samples}, max_cutpoints={max_cutpoints}, bandit_rounds={bandit_rounds}")

    X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=0.2, random_state=seed, stratify=y)
    X_train = X_train.reset_index(drop=True)
    X_test = X_test.reset_index(drop=True)

    black_box = fit_black_box(model, X_train, y_train, seed=seed, device_preference=device, epochs=epochs, verbose=verbose)
    test_acc = black_box.score(X_test, y_test)
    if verbose:
        print(f"[clf] {model} test_acc={test_acc:.3f}")

    idx = max(0, min(int(instance_index), len(X_test) - 1))
    instance = X_test.iloc[idx]
    perturb = make_perturbation(perturbation, instance, X_train, features=features)
    problem = AnchorProblem(
        instance,
        black_box,
        perturb,
        features=features,
        precision_threshold=precision_threshold,
        n_samples=n_samples,
        min_support=min_support,
        cut_method=cut_method,
        max_cutpoints=max_cutpoints,
        coverage_mode=coverage_mode,
        seed=seed,
    )
    target = int(problem.target)
    target_name = class_names[target] if 0 <= target < len(class_names) else str(target)
    if verbose:
        print(f"[local] anchoring test idx={idx} | prediction={target_name} | instance={instance[features].round(3).to_dict()}")

    results = {}
    for name in strategies:
        results[name] = run_strategy(name, problem, n_jobs=n_jobs, bandit_rounds=bandit_rounds,
                                     class_names=class_names, verbose=verbose)

    # precision re-measured on fresh samples drawn inside each final anchor
    holdout = {name: problem.holdout_precision(res.anchor, seed=seed + 1) for name, res in results.items()}

    print("\n=== Strategy Comparison ===")
    for name, res in results.items():
        held = "n/a" if holdout[name] is None else f"{holdout[name]:.3f}"
        line = (
            f"[compare strategy={name}] anchor={[str(pr) for pr in res.anchor]} | "
            f"precision={res.precision:.3f} | holdout_precision={held} | coverage={res.coverage:.3f} | "
            f"n_inside={res.n_inside} | feasible={res.feasible} | evaluations={res.n_evaluations}"
        )
        if any(h.get("parsed") is False for h in res.history):
            line += " | names unparsed, empty anchor scored"
        print(line)

    if show_plots or save_dir is not None:
        if save_dir is not None:
            os.makedirs(save_dir, exist_ok=True)
        _plot_results(problem, results, show_plots, save_dir)

    return {
        "test_accuracy": test_acc,
        "instance_index": idx,
        "target": target,
        "class_names": class_names,
        "features": features,
        "results": {name: {**res.as_dict(), "holdout_precision": holdout[name]} for name, res in results.items()},
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Compare anchor search strategies (brute force, greedy, UCB bandit)")
    parser.add_argument("--dataset", type=str, default="moons", choices=list(DATASET_CHOICES), help="Dataset to use")
    parser.add_argument("--csv", dest="csv_path", type=str, default=None, help="CSV file to explain instead of a built-in dataset (needs --target and --features)")
    parser.add_argument("--target", dest="target_column", type=str, default=None, help="Class column of the CSV")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--model", type=str, default=None, choices=list(MODEL_CHOICES), help="Black-box model (None=auto)")
    parser.add_argument("--features", type=str, nargs="*", default=None, help="Features to search over, one or two (None=auto)")
    parser.add_argument("--instance_index", type=int, default=0, help="Test instance to explain")
    parser.add_argument("--precision_target", type=parse_nullable_float, default=None, help="Anchor precision threshold (None=auto)")
    parser.add_argument("--perturbation", type=str, default=None, choices=list(PERTURBATION_CHOICES), help="Perturbation distribution (None=auto)")
    parser.add_argument("--n_samples", type=parse_nullable_int, default=None, help="Perturbation pool size (None=auto)")
    parser.add_argument("--max_cutpoints", type=parse_nullable_int, default=None, help="Cut-points kept per feature (None=auto)")
    parser.add_argument("--min_support", type=int, default=10, help="Minimum pool samples inside a feasible anchor")
    parser.add_argument("--cut_method", type=str, default="midpoint", choices=["midpoint", "quantile"], help="Cut-point construction")
    parser.add_argument("--coverage_mode", type=str, default="samples", choices=list(COVERAGE_MODES), help="Coverage as sample fraction or box volume")
    parser.add_argument("--strategies", type=str, nargs="*", default=list(DEFAULT_STRATEGIES), choices=list(STRATEGY_CHOICES), help="Strategies to run")
    parser.add_argument("--n_jobs", type=int, default=1, help="Parallel rows for the brute-force grid")
    parser.add_argument("--bandit_rounds", type=parse_nullable_int, default=None, help="Bandit rounds (None=auto)")
    parser.add_argument("--epochs", type=int, default=20, help="MLP training epochs")
    parser.add_argument("--device", type=str, default="auto", choices=list(DEVICE_CHOICES), help="Device: auto|cuda|mps|cpu")
    parser.add_argument("--save_dir", type=str, default=None, help="Directory to save figures into")
    parser.add_argument("--show_plots", action="store_true", default=True, help="Enable visualization plots (default: True)")
    parser.add_argument("--no-plots", dest="show_plots", action="store_false", help="Disable visualization plots")
    parser.add_argument("--quiet", dest="verbose", action="store_false", help="Only print the comparison table")

    args = parser.parse_args(argv)

    run_compare(
        dataset=args.dataset,
        csv_path=args.csv_path,
        target_column=args.target_column,
        seed=args.seed,
        model=args.model,
        features=args.features,
        instance_index=args.instance_index,
        precision_threshold=args.precision_target,
        perturbation=args.perturbation,
        n_samples=args.n_samples,
        max_cutpoints=args.max_cutpoints,
        min_support=args.min_support,
        cut_method=args.cut_method,
        coverage_mode=args.coverage_mode,
        strategies=args.strategies,
        n_jobs=args.n_jobs,
        bandit_rounds=args.bandit_rounds,
        epochs=args.epochs,
        device=args.device,
        show_plots=args.show_plots,
        save_dir=args.save_dir,
        verbose=args.verbose,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
