import numpy as np

from ..anchors.cutpoints import discretize_by_edges
from ..anchors.predicate import Anchor
from ..anchors.metrics import AnchorScore
from .base import AnchorProblem, SearchResult


DIRECTIONS = ("shrink_lower", "expand_lower", "shrink_upper", "expand_upper")


class BoxGrid:
    """
    Axis-aligned box whose sides sit on per-feature cut-point grids.

    For each feature the grid is [domain_low] + cut-points + [domain_high];
    the box stores a pair of grid indices per feature. A side resting on the
    domain edge emits no predicate.
    """

    def __init__(self, problem: AnchorProblem, initial_window: int = 0):
        self.features = list(problem.features)
        self.edges = {}
        self.instance_cell = {}
        self.lower = {}
        self.upper = {}
        for f in self.features:
            lo, hi = problem.domain[f]
            lowers, uppers = problem.cutpoints(f)
            inner = np.concatenate([lowers, uppers])
            inner = inner[(inner > lo) & (inner < hi)]
            edges = np.unique(np.concatenate([[lo], inner, [hi]]))
            last = edges.size - 1
            x = float(problem.instance[f])
            # bin over the inner cuts == index of the cell's lower edge
            cell = int(discretize_by_edges(np.array([[x]]), [edges[1:-1]], right=True)[0, 0])
            k_low = int(np.clip(cell, 0, max(last - 1, 0)))
            k_high = int(np.clip(cell + 1, min(1, last), last))
            self.edges[f] = edges
            self.instance_cell[f] = (k_low, k_high)
            w = int(initial_window)
            self.lower[f] = max(0, k_low - w)
            self.upper[f] = min(last, k_high + w)

    def copy_state(self) -> tuple[dict, dict]:
        return dict(self.lower), dict(self.upper)

    def restore(self, state: tuple[dict, dict]) -> None:
        self.lower, self.upper = dict(state[0]), dict(state[1])

    def move(self, feature: str, direction: str, step: int = 1) -> bool:
        """Apply a move in place; returns False (leaving the box unchanged) when the move is invalid."""
        last = self.edges[feature].size - 1
        k_low, k_high = self.instance_cell[feature]
        lower, upper = self.lower[feature], self.upper[feature]
        if direction == "shrink_lower":
            lower += step
        elif direction == "expand_lower":
            lower -= step
        elif direction == "shrink_upper":
            upper -= step
        elif direction == "expand_upper":
            upper += step
        else:
            raise ValueError(f"Unknown direction '{direction}'. Choose one of {list(DIRECTIONS)}.")
        if lower < 0 or upper > last or lower >= upper:
            return False
        if lower > k_low or upper < k_high:
            return False
        self.lower[feature], self.upper[feature] = lower, upper
        return True

    def anchor(self) -> Anchor:
        bounds = {}
        for f in self.features:
            edges = self.edges[f]
            last = edges.size - 1
            lower = None if self.lower[f] == 0 else float(edges[self.lower[f]])
            upper = None if self.upper[f] == last else float(edges[self.upper[f]])
            bounds[f] = (lower, upper)
        return Anchor.from_bounds(bounds)


def move_reward(problem: AnchorProblem, score: AnchorScore, new_score: AnchorScore, penalty: float) -> tuple[float, bool]:
    """Reward of a valid move from a box scored `score` to one scored `new_score`, and whether to keep it."""
    if new_score.is_empty:
        return -penalty, False
    if not problem.is_feasible(score):
        # still searching for a feasible box: grow support, never lose precision
        gain = new_score.precision - score.precision
        kept = problem.is_feasible(new_score) or gain >= 0.0 or score.n_inside < problem.min_support
        return gain, bool(kept)
    if not problem.is_feasible(new_score):
        return -penalty, False
    return new_score.coverage - score.coverage, True


def bandit_search(
    problem: AnchorProblem,
    n_rounds: int = 1000,
    exploration: float = 0.1,
    penalty: float = 0.05,
    step: int = 1,
    initial_window: int = 0,
    patience: int | None = 100,
    seed: int | None = None,
    verbose: bool = False,
) -> SearchResult:
    """
    Grow a box around the instance with a UCB1 bandit over move actions.

    Arms are (feature, direction) pairs. While the box is infeasible the
    reward is the precision gain and moves that lose precision are undone
    (unless the box still lacks `min_support` samples).
    Once feasible, the reward is the coverage gain; moves that break
    feasibility are penalised and undone, as are moves that leave the grid,
    drop the instance, or leave the box without samples.
    """
    start = problem.n_evaluations
    rng = np.random.default_rng(problem.seed if seed is None else seed)
    box = BoxGrid(problem, initial_window=initial_window)
    arms = [(f, d) for f in problem.features for d in DIRECTIONS]
    counts = np.zeros(len(arms), dtype=np.int64)
    sums = np.zeros(len(arms), dtype=np.float64)

    anchor = box.anchor()
    score = problem.score(anchor)
    best_anchor, best_score = anchor, score
    history = []
    since_improve = 0
    if verbose:
        print(f"[bandit] arms={len(arms)} | start anchor={[str(p) for p in anchor]} | precision={score.precision:.3f} | coverage={score.coverage:.3f}")

    for t in range(1, int(n_rounds) + 1):
        untried = np.where(counts == 0)[0]
        if untried.size > 0:
            a = int(rng.choice(untried))
        else:
            ucb = sums / counts + exploration * np.sqrt(2.0 * np.log(t) / counts)
            a = int(np.argmax(ucb))
        feature, direction = arms[a]

        prev_state = box.copy_state()
        kept = False
        if not box.move(feature, direction, step):
            reward = -penalty
        else:
            new_anchor = box.anchor()
            new_score = problem.score(new_anchor)
            reward, kept = move_reward(problem, score, new_score, penalty)
            if kept:
                anchor, score = new_anchor, new_score
        if not kept:
            box.restore(prev_state)

        counts[a] += 1
        sums[a] += reward
        if problem.rank_key(score) > problem.rank_key(best_score):
            best_anchor, best_score = anchor, score
            since_improve = 0
        else:
            since_improve += 1

        history.append({
            "round": t,
            "feature": feature,
            "direction": direction,
            "reward": float(reward),
            "kept": bool(kept),
            "precision": float(score.precision),
            "coverage": float(score.coverage),
            "best_coverage": float(best_score.coverage),
        })
        if verbose and (t % 50 == 0):
            print(f"[bandit] round {t}/{n_rounds} | precision={score.precision:.3f} | coverage={score.coverage:.3f} | best_coverage={best_score.coverage:.3f} | feasible={problem.is_feasible(best_score)}")
        if patience is not None and since_improve >= patience:
            if verbose:
                print(f"[bandit] no improvement for {patience} rounds, stopping at round {t}")
            break

    result = problem.result("bandit", best_anchor, best_score, history, start=start)
    if verbose:
        print(f"[bandit] best anchor={[str(p) for p in result.anchor]} | precision={result.precision:.3f} | coverage={result.coverage:.3f} | feasible={result.feasible}")
    return result
