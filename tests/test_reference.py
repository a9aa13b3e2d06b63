import sys
import types

import pytest

from anchor_xai.anchors.predicate import Anchor, Predicate
from anchor_xai.search.reference import explain_with_anchor_exp, parse_anchor_names


class TestParseAnchorNames:
    def test_simple_rules(self):
        anchor = parse_anchor_names(["x1 > 0.50", "x2 <= 1.25"], ["x1", "x2"])
        assert anchor == Anchor((Predicate("x1", ">", 0.5), Predicate("x2", "<=", 1.25)))

    def test_range_rule(self):
        anchor = parse_anchor_names(["0.10 < x1 <= 0.50"], ["x1"])
        assert anchor == Anchor((Predicate("x1", ">", 0.1), Predicate("x1", "<=", 0.5)))

    def test_feature_names_with_spaces(self):
        anchor = parse_anchor_names(["mean radius <= 13.37", "-1.5 <= mean texture < 2e1"],
                                    ["mean radius", "mean texture"])
        assert [str(p) for p in anchor] == ["mean radius <= 13.37", "mean texture >= -1.50", "mean texture < 20.00"]

    def test_empty_names(self):
        assert parse_anchor_names([], ["x1"]) == Anchor()

    def test_unparseable(self):
        assert parse_anchor_names(["x3 > 1.0"], ["x1"]) is None
        assert parse_anchor_names(["x1 is large"], ["x1"]) is None


def test_anchor_exp_baseline(quadrant_problem):
    pytest.importorskip("anchor")
    res = explain_with_anchor_exp(quadrant_problem)
    assert res.strategy == "anchor_exp"
    assert 0.0 <= res.precision <= 1.0
    assert res.anchor.holds(quadrant_problem.instance)
    assert len(res.history) == 1


def _install_fake_anchor_exp(monkeypatch, names):
    class Explanation:
        def names(self):
            return list(names)

        def precision(self):
            return 0.97

        def coverage(self):
            return 0.2

    class AnchorTabularExplainer:
        def __init__(self, class_names, feature_names, train_data, categorical_names):
            self.feature_names = feature_names

        def explain_instance(self, data_row, classifier_fn, threshold=0.95, max_anchor_size=None):
            classifier_fn(data_row.reshape(1, -1))
            return Explanation()

    tabular = types.ModuleType("anchor.anchor_tabular")
    tabular.AnchorTabularExplainer = AnchorTabularExplainer
    package = types.ModuleType("anchor")
    package.anchor_tabular = tabular
    monkeypatch.setitem(sys.modules, "anchor", package)
    monkeypatch.setitem(sys.modules, "anchor.anchor_tabular", tabular)


class TestExplainWithAnchorExp:
    def test_parsed_names_rescored_on_pool(self, monkeypatch, quadrant_problem):
        _install_fake_anchor_exp(monkeypatch, ["x1 > 0.50", "x2 > 0.50"])
        res = explain_with_anchor_exp(quadrant_problem)
        assert res.history[0]["parsed"] is True
        assert res.anchor == Anchor((Predicate("x1", ">", 0.5), Predicate("x2", ">", 0.5)))
        assert res.precision == 1.0
        assert res.n_evaluations == 1

    def test_unparsed_names_are_flagged(self, monkeypatch, quadrant_problem, capsys):
        _install_fake_anchor_exp(monkeypatch, ["x1 is high"])
        res = explain_with_anchor_exp(quadrant_problem)
        assert res.history[0]["parsed"] is False
        assert res.history[0]["names"] == ["x1 is high"]
        assert res.anchor == Anchor()
        assert "could not parse" in capsys.readouterr().out

    def test_missing_package(self, monkeypatch, quadrant_problem):
        monkeypatch.setitem(sys.modules, "anchor", None)
        with pytest.raises(RuntimeError, match="anchor-exp"):
            explain_with_anchor_exp(quadrant_problem)

    def test_comparison_table_marks_unparsed_names(self, monkeypatch, capsys):
        from anchor_xai.run_compare import run_compare

        _install_fake_anchor_exp(monkeypatch, ["x1 is high"])
        run_compare(dataset="moons", model="logistic", n_samples=300, max_cutpoints=6,
                    strategies=["anchor_exp"], show_plots=False, verbose=False)
        line = [l for l in capsys.readouterr().out.splitlines() if l.startswith("[compare strategy=anchor_exp]")]
        assert line and "names unparsed" in line[0]
