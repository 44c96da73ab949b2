"""Torch reference collaborators: a hashed bag-of-words classifier with a low-rank adapter.

The base classifier is frozen; training only updates the adapter factors
A (rank x features) and B (labels x rank). At load time the adapter is
applied as ``W + scale * B @ A``.
"""

import hashlib
import os
import pickle
import time
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Iterator, Sequence

import torch
import torch.nn.functional as F

from adaptergym.core.errors import ArtifactLoadFailure, StorageFailure, TrainerFailure
from adaptergym.core.events import CancellationToken, ProgressEvent
from adaptergym.core.samples import EvaluationSample, filter_by_length
from adaptergym.train.adapters.base import ArtifactRef, Trainer, TrainerConfig


def hash_features(text: str, num_features: int) -> torch.Tensor:
    """L2-normalized hashed token counts."""
    vec = torch.zeros(num_features)
    for token in text.lower().split():
        # md5 keeps buckets stable across processes (str hash is salted)
        bucket = int(hashlib.md5(token.encode()).hexdigest()[:8], 16) % num_features
        vec[bucket] += 1.0
    norm = vec.norm()
    if norm > 0:
        vec = vec / norm
    return vec


class BaseClassifier:
    """Frozen linear classifier over hashed features."""

    def __init__(self, labels: Sequence[str], weight: torch.Tensor, bias: torch.Tensor):
        self.labels = list(labels)
        self.weight = weight
        self.bias = bias

    @property
    def num_features(self) -> int:
        return self.weight.shape[1]

    @classmethod
    def initialize(cls, labels: Sequence[str], num_features: int = 4096, seed: int = 7) -> "BaseClassifier":
        """Create an untrained classifier with small seeded weights."""
        generator = torch.Generator().manual_seed(seed)
        labels = sorted(set(labels))
        weight = torch.randn(len(labels), num_features, generator=generator) * 0.01
        return cls(labels, weight, torch.zeros(len(labels)))

    def logits(self, features: torch.Tensor, delta: torch.Tensor | None = None) -> torch.Tensor:
        weight = self.weight if delta is None else self.weight + delta
        return features @ weight.T + self.bias

    def label_index(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            raise TrainerFailure(f"Label {label!r} unknown to base model (labels: {self.labels})")

    def save(self, path: str | Path) -> None:
        torch.save({"labels": self.labels, "weight": self.weight, "bias": self.bias}, path)

    @classmethod
    def load(cls, path: str | Path) -> "BaseClassifier":
        payload = torch.load(path, map_location="cpu", weights_only=True)
        return cls(payload["labels"], payload["weight"], payload["bias"])


def load_adapter_delta(path: str | Path, scale: float, base: BaseClassifier) -> torch.Tensor:
    """Load adapter factors and return the scaled weight delta.

    Raises:
        ArtifactLoadFailure: If the file is missing, corrupt or shaped for another base
    """
    try:
        payload = torch.load(path, map_location="cpu", weights_only=True)
        a, b = payload["A"], payload["B"]
    except (OSError, RuntimeError, EOFError, KeyError, TypeError, pickle.UnpicklingError) as e:
        raise ArtifactLoadFailure(f"Cannot read adapter {path}: {e}") from e

    if a.shape[1] != base.num_features or b.shape[0] != len(base.labels) or a.shape[0] != b.shape[1]:
        raise ArtifactLoadFailure(
            f"Adapter {path} shape {tuple(b.shape)}x{tuple(a.shape)} does not match base "
            f"({len(base.labels)} labels, {base.num_features} features)"
        )
    return scale * (b @ a)


class _TorchScorer:
    """Base classifier with an optional adapter delta applied."""

    def __init__(self, base: BaseClassifier, delta: torch.Tensor | None):
        self.base = base
        self.delta = delta

    def predict(self, text: str) -> str:
        with torch.no_grad():
            features = hash_features(text, self.base.num_features)
            index = int(self.base.logits(features, self.delta).argmax())
        return self.base.labels[index]

    def release(self) -> None:
        self.delta = None


class TorchLoraLoader:
    """Loads base plus adapter at a scale as a scorer."""

    def __init__(self, base: BaseClassifier):
        self.base = base

    @contextmanager
    def load(self, artifact: ArtifactRef) -> Iterator[_TorchScorer]:
        delta = None
        if artifact.path is not None:
            delta = load_adapter_delta(artifact.path, artifact.scale, self.base)
        scorer = _TorchScorer(self.base, delta)
        try:
            yield scorer
        finally:
            scorer.release()


class TorchLoraMerger:
    """Merges an adapter into the base weights and writes a standalone model."""

    def __init__(self, base: BaseClassifier):
        self.base = base

    def materialize(self, adapter_path: Path, scale: float, output_path: Path) -> Path:
        delta = load_adapter_delta(adapter_path, scale, self.base)
        merged = BaseClassifier(self.base.labels, self.base.weight + delta, self.base.bias.clone())

        output_path = Path(output_path)
        tmp = output_path.with_name(f".{output_path.name}.tmp")
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            merged.save(tmp)
            os.replace(tmp, output_path)
        except (OSError, RuntimeError) as e:
            raise StorageFailure(f"Cannot write merged model to {output_path}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()
        return output_path


class TorchLoraTrainer(Trainer):
    """Trains a low-rank adapter on a frozen BaseClassifier."""

    def __init__(
        self,
        base: BaseClassifier,
        samples: Sequence[EvaluationSample],
        rank: int = 8,
        learning_rate: float = 0.01,
        seed: int = 7,
    ):
        self.base = base
        self.samples = list(samples)
        self.rank = rank

        generator = torch.Generator().manual_seed(seed)
        self.a = (torch.randn(rank, base.num_features, generator=generator) / rank ** 0.5).requires_grad_()
        self.b = torch.zeros(len(base.labels), rank, requires_grad=True)
        self.optimizer = torch.optim.Adam([self.a, self.b], lr=learning_rate)

        self._iteration = 0
        self._epoch = 0
        self._next_sample = 0
        self._best_loss = float("inf")

    @property
    def name(self) -> str:
        return f"torch_lora_r{self.rank}"

    def _adapter_payload(self) -> dict[str, Any]:
        return {"A": self.a.detach().clone(), "B": self.b.detach().clone(), "labels": self.base.labels}

    def save_adapter(self, path: str | Path) -> None:
        torch.save(self._adapter_payload(), path)

    def save_checkpoint(self, path: str | Path) -> None:
        torch.save({
            "adapter": self._adapter_payload(),
            "optimizer": self.optimizer.state_dict(),
            "iteration": self._iteration,
            "epoch": self._epoch,
            "next_sample": self._next_sample,
            "best_loss": self._best_loss,
        }, path)

    def _resume(self, path: str) -> None:
        try:
            payload = torch.load(path, map_location="cpu", weights_only=True)
            with torch.no_grad():
                self.a.copy_(payload["adapter"]["A"])
                self.b.copy_(payload["adapter"]["B"])
            self.optimizer.load_state_dict(payload["optimizer"])
        except (OSError, RuntimeError, EOFError, KeyError, pickle.UnpicklingError) as e:
            raise TrainerFailure(f"Cannot resume from {path}: {e}") from e
        self._iteration = payload["iteration"]
        self._epoch = payload["epoch"]
        self._next_sample = payload["next_sample"]
        self._best_loss = payload["best_loss"]

    def _encode(self, samples: Sequence[EvaluationSample]) -> tuple[torch.Tensor, torch.Tensor]:
        features = torch.stack([hash_features(s.text, self.base.num_features) for s in samples])
        targets = torch.tensor([self.base.label_index(s.label) for s in samples])
        return features, targets

    def _step(self, x: torch.Tensor, y: torch.Tensor, micro_batch: int) -> float:
        self.optimizer.zero_grad()
        total = 0.0
        chunks = max(1, (len(x) + micro_batch - 1) // micro_batch)
        for start in range(0, len(x), micro_batch):
            delta = self.b @ self.a
            loss = F.cross_entropy(self.base.logits(x[start:start + micro_batch], delta),
                                   y[start:start + micro_batch])
            (loss / chunks).backward()
            total += loss.item() / chunks
        self.optimizer.step()
        return total

    def run(self, config: TrainerConfig, token: CancellationToken) -> Iterator[ProgressEvent]:
        samples = filter_by_length(self.samples, 0, config.context_size)
        if not samples:
            raise TrainerFailure(f"No training sample fits a context of {config.context_size} tokens")
        features, targets = self._encode(samples)

        if config.resume_from_checkpoint:
            self._resume(config.resume_from_checkpoint)

        # Gradient accumulation bounds peak memory per forward pass
        micro_batch = max(1, config.batch_size // 4) if config.use_memory_optimized_mode else config.batch_size
        start = time.perf_counter()
        first_iteration = self._iteration

        while self._iteration < config.iteration_count:
            if token.stop_requested:
                return

            indices = [(self._next_sample + i) % len(samples) for i in range(config.batch_size)]
            if self._next_sample + config.batch_size >= len(samples):
                self._epoch += 1
            self._next_sample = (self._next_sample + config.batch_size) % len(samples)

            loss = self._step(features[indices], targets[indices], micro_batch)
            self._iteration += 1
            self._best_loss = min(self._best_loss, loss)

            elapsed = time.perf_counter() - start
            done = self._iteration - first_iteration
            remaining = elapsed / done * (config.iteration_count - self._iteration)

            yield ProgressEvent(
                iteration=self._iteration,
                iteration_count=config.iteration_count,
                epoch=self._epoch,
                percentage=self._iteration / config.iteration_count * 100,
                loss=loss,
                best_loss=self._best_loss,
                elapsed=timedelta(seconds=elapsed),
                remaining=timedelta(seconds=remaining),
                next_sample_index=self._next_sample,
                sample_count=len(samples),
            )
