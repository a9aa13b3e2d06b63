from ..anchors.predicate import Anchor, Predicate
from .base import AnchorProblem, SearchResult


def _tighten(anchor: Anchor, predicate: Predicate) -> Anchor:
    """Extend `anchor`, replacing any looser bound of the same kind on the same feature."""
    lower_ops = (">", ">=")
    kind = lower_ops if predicate.op in lower_ops else ("<", "<=")
    kept = [p for p in anchor if not (p.feature == predicate.feature and p.op in kind)]
    return Anchor(tuple(kept)).extend(predicate)


def _candidates(problem: AnchorProblem, anchor: Anchor) -> list[Anchor]:
    out = []
    for feature in problem.features:
        cur_lower, cur_upper = anchor.bounds(feature)
        lowers, uppers = problem.cutpoints(feature)
        for c in lowers:
            if c > cur_lower:
                out.append(_tighten(anchor, Predicate(feature, ">", float(c))))
        for c in uppers:
            if c < cur_upper:
                out.append(_tighten(anchor, Predicate(feature, "<=", float(c))))
    return out


def greedy_search(problem: AnchorProblem, max_anchor_size: int | None = None, verbose: bool = False) -> SearchResult:
    """
    Sequential greedy construction from the empty anchor.

    Every step scores all one-predicate tightenings of the current anchor.
    As soon as one of them is feasible, the feasible candidate with the
    largest coverage is returned. Otherwise the most precise candidate is
    kept and the search continues until `max_anchor_size` predicates (default:
    a lower and an upper bound per searched feature) or no candidates remain.
    """
    start = problem.n_evaluations
    if max_anchor_size is None:
        max_anchor_size = 2 * len(problem.features)

    anchor = Anchor()
    score = problem.score(anchor)
    history = [{"step": 0, "anchor": str(anchor), "precision": score.precision, "coverage": score.coverage}]
    if problem.is_feasible(score):
        if verbose:
            print(f"[greedy] empty anchor already feasible | precision={score.precision:.3f}")
        return problem.result("greedy", anchor, score, history, start=start)

    best_anchor, best_score = anchor, score
    step = 0
    while len(anchor) < max_anchor_size:
        step += 1
        scored = []
        for cand in _candidates(problem, anchor):
            s = problem.score(cand)
            if s.n_inside < problem.min_support:
                continue
            scored.append((cand, s))
        if not scored:
            if verbose:
                print(f"[greedy] step {step} | no candidates with support >= {problem.min_support}")
            break

        feasible = [(a, s) for a, s in scored if problem.is_feasible(s)]
        if feasible:
            anchor, score = max(feasible, key=lambda t: (t[1].coverage, t[1].precision))
            history.append({"step": step, "anchor": str(anchor), "precision": score.precision, "coverage": score.coverage})
            if verbose:
                print(f"[greedy] step {step} | feasible anchor={[str(p) for p in anchor]} | precision={score.precision:.3f} | coverage={score.coverage:.3f}")
            return problem.result("greedy", anchor, score, history, start=start)

        anchor, score = max(scored, key=lambda t: (t[1].precision, t[1].coverage))
        history.append({"step": step, "anchor": str(anchor), "precision": score.precision, "coverage": score.coverage})
        if verbose:
            print(f"[greedy] step {step} | candidates={len(scored)} | anchor={[str(p) for p in anchor]} | precision={score.precision:.3f} | coverage={score.coverage:.3f}")
        if problem.rank_key(score) > problem.rank_key(best_score):
            best_anchor, best_score = anchor, score

    return problem.result("greedy", best_anchor, best_score, history, start=start)
