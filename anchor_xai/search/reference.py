import re

import numpy as np
import pandas as pd

from ..anchors.predicate import Anchor, Predicate
from .base import AnchorProblem, SearchResult


_NUM = r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?"
_RANGE = re.compile(rf"^\s*({_NUM})\s*(<=|<)\s*(.+?)\s*(<=|<)\s*({_NUM})\s*$")
_SIMPLE = re.compile(rf"^\s*(.+?)\s*(<=|>=|<|>|==|=)\s*({_NUM})\s*$")
_FLIP = {"<": ">", "<=": ">="}


def parse_anchor_names(names: list[str], features: list[str]) -> Anchor | None:
    """Parse anchor-exp rule strings ("a <= 0.50", "0.10 < a <= 0.50") into an Anchor; None if any fails."""
    preds = []
    for name in names:
        m = _RANGE.match(name)
        if m and m.group(3) in features:
            lo, op_lo, feat, op_hi, hi = m.groups()
            preds.append(Predicate(feat, _FLIP[op_lo], float(lo)))
            preds.append(Predicate(feat, op_hi, float(hi)))
            continue
        m = _SIMPLE.match(name)
        if m and m.group(1) in features:
            feat, op, val = m.groups()
            preds.append(Predicate(feat, "==" if op == "=" else op, float(val)))
            continue
        return None
    return Anchor(tuple(preds))


def explain_with_anchor_exp(
    problem: AnchorProblem,
    train_data: pd.DataFrame | None = None,
    class_names: list[str] | None = None,
    max_anchor_size: int | None = None,
    verbose: bool = False,
) -> SearchResult:
    """Reference anchor from the marcotcr/anchor implementation, re-scored on the problem's sample pool."""
    try:
        from anchor import anchor_tabular
    except Exception as e:
        raise RuntimeError("anchor-exp is required for the reference baseline. Install with `pip install anchor-exp`.") from e

    start = problem.n_evaluations
    features = list(problem.features)
    if train_data is None:
        train_data = problem.samples
    X_train = train_data[features].to_numpy(dtype=float)
    if class_names is None:
        labels = np.unique(np.concatenate([problem.predictions, [problem.target]]))
        class_names = [str(c) for c in labels]

    def predict_labels(x: np.ndarray) -> np.ndarray:
        frame = pd.DataFrame(np.atleast_2d(x), columns=features)
        return np.asarray(problem.predict_fn(problem.model_input(frame))).ravel()

    explainer = anchor_tabular.AnchorTabularExplainer(class_names, features, X_train, {})
    exp = explainer.explain_instance(
        problem.instance[features].to_numpy(dtype=float),
        predict_labels,
        threshold=problem.precision_threshold,
        max_anchor_size=max_anchor_size,
    )

    def _metric(val):
        return float(val() if callable(val) else val)

    names_attr = getattr(exp, "names")
    names = list(names_attr() if callable(names_attr) else names_attr)
    anchor = parse_anchor_names(names, features)
    history = [{
        "names": names,
        "parsed": anchor is not None,
        "precision": _metric(exp.precision),
        "coverage": _metric(exp.coverage),
    }]
    if anchor is None:
        print(f"[reference] could not parse anchor names {names}; scoring the empty anchor instead")
        anchor = Anchor()
    score = problem.score(anchor)
    if verbose:
        print(f"[reference] anchor-exp names={names} | own precision={history[0]['precision']:.3f} | rescored precision={score.precision:.3f} | coverage={score.coverage:.3f}")
    return problem.result("anchor_exp", anchor, score, history, start=start)
