import itertools

import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from ..anchors.predicate import Anchor
from .base import AnchorProblem, SearchResult


def _bound_options(problem: AnchorProblem, feature: str) -> tuple[list, list]:
    lower, upper = problem.cutpoints(feature)
    return [None] + [float(c) for c in lower], [None] + [float(c) for c in upper]


def _score_row(problem: AnchorProblem, first_lower, options: list[tuple[str, list, list]]) -> list[dict]:
    first, _, first_uppers = options[0]
    rest = []
    for feature, lowers, uppers in options[1:]:
        rest.append([(feature, lo, up) for lo in lowers for up in uppers])
    rows = []
    for first_upper in first_uppers:
        for combo in itertools.product(*rest):
            bounds = {first: (first_lower, first_upper)}
            for feature, lo, up in combo:
                bounds[feature] = (lo, up)
            anchor = Anchor.from_bounds(bounds)
            score = problem.score(anchor, count=False)
            entry = {}
            for feature, (lo, up) in bounds.items():
                entry[f"{feature}_lower"] = lo
                entry[f"{feature}_upper"] = up
            entry.update({
                "precision": score.precision,
                "coverage": score.coverage,
                "n_inside": score.n_inside,
                "feasible": problem.is_feasible(score),
                "anchor": anchor,
                "score": score,
            })
            rows.append(entry)
    return rows


def brute_force_search(problem: AnchorProblem, n_jobs: int = 1, verbose: bool = False) -> SearchResult:
    """
    Enumerate every box over the searched features and keep the best one.

    Each feature contributes {no bound} plus its lower cut-points as lower
    bounds and {no bound} plus its upper cut-points as upper bounds, so every
    box contains the instance. The grid is split into independent rows, one
    per lower bound of the first feature, which run through joblib when
    `n_jobs != 1`.
    """
    start = problem.n_evaluations
    options = []
    for feature in problem.features:
        lowers, uppers = _bound_options(problem, feature)
        options.append((feature, lowers, uppers))

    n_boxes = 1
    for _, lowers, uppers in options:
        n_boxes *= len(lowers) * len(uppers)
    first_lowers = options[0][1]
    if verbose:
        print(f"[brute] features={problem.features} | boxes={n_boxes} | rows={len(first_lowers)} | n_jobs={n_jobs}")

    if n_jobs == 1:
        it = tqdm(first_lowers, desc="[brute] rows", disable=not verbose)
        row_results = [_score_row(problem, lo, options) for lo in it]
    else:
        # threads: the black box and the sample pool are shared, not pickled
        row_results = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_score_row)(problem, lo, options) for lo in first_lowers
        )

    entries = []
    for row_idx, row in enumerate(row_results):
        for entry in row:
            entry["row"] = row_idx
            entries.append(entry)
    problem.n_evaluations += len(entries)

    best = max(entries, key=lambda e: problem.rank_key(e["score"]))
    grid = pd.DataFrame([{k: v for k, v in e.items() if k not in ("anchor", "score")} for e in entries])
    result = problem.result("brute_force", best["anchor"], best["score"], grid=grid, start=start)
    if verbose:
        print(f"[brute] best anchor={[str(p) for p in result.anchor]} | precision={result.precision:.3f} | coverage={result.coverage:.3f} | feasible={result.feasible}")
    return result
