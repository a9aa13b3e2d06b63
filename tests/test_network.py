import numpy as np
import pytest
import torch

from anchor_xai.anchors.predicate import MissingFeatureError
from anchor_xai.datasets import load_dataset
from anchor_xai.network import BlackBox, SimpleClassifier, fit_black_box, select_device


@pytest.fixture(scope="module")
def moons():
    X, y, _, _ = load_dataset("moons", seed=0, n_samples=400)
    return X, y


class TestFitBlackBox:
    @pytest.mark.parametrize("kind", ["logistic", "forest"])
    def test_sklearn_models(self, moons, kind):
        X, y = moons
        bb = fit_black_box(kind, X, y, seed=0, verbose=False)
        assert isinstance(bb, BlackBox)
        preds = bb(X)
        assert preds.shape == (len(X),)
        assert preds.dtype.kind == "i"
        assert bb.score(X, y) > 0.8

    def test_mlp(self, moons):
        X, y = moons
        bb = fit_black_box("mlp", X, y, seed=0, device_preference="cpu", epochs=30, verbose=False)
        assert isinstance(bb.model, SimpleClassifier)
        assert set(np.unique(bb(X))) <= {0, 1}
        assert bb.score(X, y) > 0.6

    def test_unknown_kind(self, moons):
        X, y = moons
        with pytest.raises(ValueError, match="Unknown model"):
            fit_black_box("svm", X, y, verbose=False)


class TestBlackBox:
    def test_extra_columns_ignored(self, moons):
        X, y = moons
        bb = fit_black_box("logistic", X, y, verbose=False)
        wider = X.assign(noise=1.0)[["noise", "x2", "x1"]]
        np.testing.assert_array_equal(bb(wider), bb(X))

    def test_missing_column(self, moons):
        X, y = moons
        bb = fit_black_box("logistic", X, y, verbose=False)
        with pytest.raises(MissingFeatureError):
            bb(X[["x1"]])

    def test_empty_frame(self, moons):
        X, y = moons
        bb = fit_black_box("forest", X, y, verbose=False)
        assert bb(X.iloc[:0]).shape == (0,)


def test_select_device_cpu():
    assert select_device("cpu") == torch.device("cpu")
    assert select_device("auto").type in ("cpu", "cuda", "mps")
