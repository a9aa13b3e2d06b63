import numpy as np
import pandas as pd
import torch
import torch.nn as nn
import torch.optim as optim
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score
from sklearn.preprocessing import StandardScaler
from torch.utils.data import DataLoader, TensorDataset

from .anchors.predicate import MissingFeatureError


MODEL_CHOICES = ("mlp", "forest", "logistic")
DEVICE_CHOICES = ("auto", "cuda", "mps", "cpu")


class SimpleClassifier(nn.Module):
    def __init__(self, input_dim: int, num_classes: int, hidden: int = 128):
        super().__init__()
        self.num_classes = num_classes
        self.net = nn.Sequential(
            nn.Linear(input_dim, hidden),
            nn.ReLU(),
            nn.Linear(hidden, hidden),
            nn.ReLU(),
            nn.Linear(hidden, num_classes),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        # Return logits; apply softmax only when probabilities are needed
        return self.net(x)


def select_device(device_preference: str = "auto") -> torch.device:
    device_preference = (device_preference or "auto").lower()
    if device_preference == "cuda":
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    if device_preference == "mps":
        return torch.device("mps" if hasattr(torch.backends, 'mps') and torch.backends.mps.is_available() else "cpu")
    if device_preference == "cpu":
        return torch.device("cpu")
    # auto: prefer CUDA > MPS > CPU
    if torch.cuda.is_available():
        return torch.device("cuda")
    if hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def train_classifier(X_train: np.ndarray, y_train: np.ndarray, input_dim: int, num_classes: int, device: torch.device,
                     epochs: int = 10, batch_size: int = 256, lr: float = 1e-3, verbose: bool = True):
    model = SimpleClassifier(input_dim, num_classes).to(device)
    opt = optim.Adam(model.parameters(), lr=lr)
    ce = nn.CrossEntropyLoss()

    dataset = TensorDataset(torch.from_numpy(X_train).float(), torch.from_numpy(y_train).long())
    loader = DataLoader(dataset, batch_size=batch_size, shuffle=True)

    last_loss = None
    model.train()
    for e in range(1, epochs + 1):
        epoch_loss_sum = 0.0
        epoch_correct = 0
        epoch_count = 0
        for xb, yb in loader:
            xb = xb.to(device)
            yb = yb.to(device)
            opt.zero_grad()
            logits = model(xb)
            loss = ce(logits, yb)
            loss.backward()
            opt.step()
            epoch_loss_sum += float(loss.item()) * yb.size(0)
            epoch_count += int(yb.size(0))
            with torch.no_grad():
                preds = logits.argmax(dim=1)
                epoch_correct += int((preds == yb).sum().item())
        last_loss = epoch_loss_sum / max(1, epoch_count)
        last_train_acc = epoch_correct / max(1, epoch_count)
        if verbose:
            print(f"[clf] epoch {e}/{epochs} | loss={last_loss:.4f} | train_acc={last_train_acc:.3f} | samples={epoch_count}")
    model.eval()
    return model, float(last_loss if last_loss is not None else 0.0)


class BlackBox:
    """
    Label-predicting callable over data frames.

    The anchor search only sees this interface: a frame with (at least) the
    training columns goes in, integer class labels come out.
    """

    def __init__(self, kind: str, model, feature_names: list[str], scaler: StandardScaler | None = None,
                 device: torch.device | None = None):
        self.kind = kind
        self.model = model
        self.feature_names = list(feature_names)
        self.scaler = scaler
        self.device = device

    def _inputs(self, data: pd.DataFrame) -> np.ndarray:
        missing = [f for f in self.feature_names if f not in data.columns]
        if missing:
            raise MissingFeatureError(missing, data.columns)
        X = data[self.feature_names].to_numpy(dtype=np.float32)
        if self.scaler is not None:
            X = self.scaler.transform(X).astype(np.float32)
        return X

    def __call__(self, data: pd.DataFrame) -> np.ndarray:
        X = self._inputs(data)
        if len(X) == 0:
            return np.zeros(0, dtype=int)
        if self.kind == "mlp":
            self.model.eval()
            with torch.no_grad():
                t = torch.from_numpy(X).to(self.device)
                return self.model(t).argmax(dim=1).cpu().numpy().astype(int)
        return np.asarray(self.model.predict(X)).astype(int)

    def score(self, data: pd.DataFrame, y: np.ndarray) -> float:
        return float(accuracy_score(y, self(data)))


def fit_black_box(
    kind: str,
    X: pd.DataFrame,
    y: np.ndarray,
    seed: int = 42,
    device_preference: str = "auto",
    epochs: int = 20,
    verbose: bool = True,
) -> BlackBox:
    """Fit the classifier whose decisions the anchors explain."""
    y = np.asarray(y).astype(int)
    feature_names = list(X.columns)
    X_np = X.to_numpy(dtype=np.float32)
    if kind == "mlp":
        torch.manual_seed(seed)
        scaler = StandardScaler()
        X_std = scaler.fit_transform(X_np).astype(np.float32)
        device = select_device(device_preference)
        if verbose:
            print(f"[device] using {device}")
        num_classes = int(y.max()) + 1
        model, _ = train_classifier(X_std, y, X_std.shape[1], num_classes, device, epochs=epochs, verbose=verbose)
        return BlackBox("mlp", model, feature_names, scaler=scaler, device=device)
    elif kind == "forest":
        model = RandomForestClassifier(n_estimators=200, random_state=seed)
        model.fit(X_np, y)
        return BlackBox("forest", model, feature_names)
    elif kind == "logistic":
        scaler = StandardScaler()
        model = LogisticRegression(max_iter=1000)
        model.fit(scaler.fit_transform(X_np), y)
        return BlackBox("logistic", model, feature_names, scaler=scaler)
    else:
        raise ValueError(f"Unknown model '{kind}'. Choose one of {list(MODEL_CHOICES)}.")
