"""Collaborator interfaces for adapter fine-tuning."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Protocol

from adaptergym.core.events import CancellationToken, ProgressEvent


@dataclass
class TrainerConfig:
    """Run configuration handed to a trainer."""

    batch_size: int = 8
    iteration_count: int = 1000
    context_size: int = 128
    resume_from_checkpoint: str | None = None
    use_memory_optimized_mode: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "iteration_count": self.iteration_count,
            "context_size": self.context_size,
            "resume_from_checkpoint": self.resume_from_checkpoint,
            "use_memory_optimized_mode": self.use_memory_optimized_mode,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrainerConfig":
        return cls(
            batch_size=data.get("batch_size", 8),
            iteration_count=data.get("iteration_count", 1000),
            context_size=data.get("context_size", 128),
            resume_from_checkpoint=data.get("resume_from_checkpoint"),
            use_memory_optimized_mode=data.get("use_memory_optimized_mode", True),
        )


@dataclass(frozen=True)
class ArtifactRef:
    """A scorable artifact: an adapter file applied at a scale.

    ``path=None`` refers to the untrained base model.
    """

    path: Path | None
    scale: float = 1.0

    @property
    def label(self) -> str:
        if self.path is None:
            return "base model"
        return f"{Path(self.path).name} @ scale {self.scale}"


class Trainer(ABC):
    """Abstract base class for adapter trainers.

    ``run`` is a generator: while the caller handles a yielded event the
    trainer is suspended, so ``save_adapter``/``save_checkpoint`` observe
    the state of that exact iteration.
    """

    @abstractmethod
    def run(self, config: TrainerConfig, token: CancellationToken) -> Iterator[ProgressEvent]:
        """Train, yielding one progress event per reporting point.

        Args:
            config: Batch size, iteration count, context window and resume options
            token: Checked at each iteration boundary; training ends once a
                stop has been requested

        Yields:
            ProgressEvent snapshots with non-decreasing iteration numbers
        """
        pass

    @abstractmethod
    def save_adapter(self, path: str | Path) -> None:
        """Write the current adapter (model-only delta) to path."""
        pass

    @abstractmethod
    def save_checkpoint(self, path: str | Path) -> None:
        """Write full trainer-resumable state to path."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Trainer name."""
        pass


class Scorer(Protocol):
    """A loaded artifact that predicts a label for a text."""

    def predict(self, text: str) -> str:
        ...


class ArtifactLoader(Protocol):
    """Loads artifacts as scorers, scoped to a context manager."""

    def load(self, artifact: ArtifactRef) -> AbstractContextManager[Scorer]:
        ...


class Finalizer(Protocol):
    """Materializes a deployable model from an adapter and a scale."""

    def materialize(self, adapter_path: Path, scale: float, output_path: Path) -> Path:
        ...
