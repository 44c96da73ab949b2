"""Experiment configuration loaded from YAML."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from adaptergym.experiment.policies import CheckpointConfig, EvaluationConfig, StoppingConfig
from adaptergym.train.adapters.base import TrainerConfig


@dataclass
class ModelConfig:
    """Reference classifier and adapter settings."""

    base_path: str | None = None
    num_features: int = 4096
    rank: int = 8
    learning_rate: float = 0.01
    seed: int = 7


@dataclass
class DataConfig:
    """Training and held-out evaluation data."""

    train_path: str = ""
    train_max_samples: int = 1000
    train_seed: int = 5001
    eval_path: str | None = None  # defaults to train_path
    eval_max_samples: int = 300
    eval_seed: int = 2524


@dataclass
class ExperimentConfig:
    """Complete experiment definition."""

    name: str
    run_dir: str = ""
    output_path: str = ""
    model: ModelConfig = field(default_factory=ModelConfig)
    data: DataConfig = field(default_factory=DataConfig)
    trainer: TrainerConfig = field(default_factory=TrainerConfig)
    stopping: StoppingConfig = field(default_factory=StoppingConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    checkpoints: CheckpointConfig = field(default_factory=CheckpointConfig)

    def __post_init__(self) -> None:
        if not self.run_dir:
            self.run_dir = str(Path("runs") / self.name)
        if not self.output_path:
            self.output_path = f"{self.name}.model.pt"

    @property
    def store_dir(self) -> Path:
        return Path(self.run_dir) / "checkpoints"

    def validate(self) -> None:
        """Validate value ranges."""
        if not self.data.train_path:
            raise ValueError("data.train_path is required")
        if not self.evaluation.scale_grid:
            raise ValueError("evaluation.scale_grid must not be empty")
        if self.data.eval_max_samples <= 0:
            raise ValueError("data.eval_max_samples must be positive")
        if self.trainer.batch_size <= 0 or self.trainer.iteration_count <= 0:
            raise ValueError("trainer.batch_size and trainer.iteration_count must be positive")
        if self.stopping.loss_floor < 0:
            raise ValueError("stopping.loss_floor must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "run_dir": self.run_dir,
            "output_path": self.output_path,
            "model": {
                "base_path": self.model.base_path,
                "num_features": self.model.num_features,
                "rank": self.model.rank,
                "learning_rate": self.model.learning_rate,
                "seed": self.model.seed,
            },
            "data": {
                "train_path": self.data.train_path,
                "train_max_samples": self.data.train_max_samples,
                "train_seed": self.data.train_seed,
                "eval_path": self.data.eval_path,
                "eval_max_samples": self.data.eval_max_samples,
                "eval_seed": self.data.eval_seed,
            },
            "trainer": self.trainer.to_dict(),
            "stopping": self.stopping.to_dict(),
            "evaluation": {
                "scale_grid": list(self.evaluation.scale_grid),
                "evaluate_every": self.evaluation.evaluate_every,
                "evaluate_below_loss": self.evaluation.evaluate_below_loss,
            },
            "checkpoints": {
                "recovery_every": self.checkpoints.recovery_every,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExperimentConfig":
        """Create from dictionary."""
        model_data = data.get("model") or {}
        data_data = data.get("data") or {}
        eval_data = data.get("evaluation") or {}
        checkpoint_data = data.get("checkpoints") or {}

        config = cls(
            name=data.get("name", "experiment"),
            run_dir=data.get("run_dir", ""),
            output_path=data.get("output_path", ""),
            model=ModelConfig(
                base_path=model_data.get("base_path"),
                num_features=model_data.get("num_features", 4096),
                rank=model_data.get("rank", 8),
                learning_rate=model_data.get("learning_rate", 0.01),
                seed=model_data.get("seed", 7),
            ),
            data=DataConfig(
                train_path=data_data.get("train_path", ""),
                train_max_samples=data_data.get("train_max_samples", 1000),
                train_seed=data_data.get("train_seed", 5001),
                eval_path=data_data.get("eval_path"),
                eval_max_samples=data_data.get("eval_max_samples", 300),
                eval_seed=data_data.get("eval_seed", 2524),
            ),
            trainer=TrainerConfig.from_dict(data.get("trainer") or {}),
            stopping=StoppingConfig.from_dict(data.get("stopping") or {}),
            evaluation=EvaluationConfig(
                scale_grid=[float(s) for s in eval_data.get("scale_grid", [0.75, 1.0, 1.25, 1.6])],
                evaluate_every=eval_data.get("evaluate_every", 10),
                evaluate_below_loss=eval_data.get("evaluate_below_loss", 2.0),
            ),
            checkpoints=CheckpointConfig(
                recovery_every=checkpoint_data.get("recovery_every", 10),
            ),
        )
        config.validate()
        return config


def load_experiment_config(path: str | Path) -> ExperimentConfig:
    """Load experiment configuration from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a mapping")
    return ExperimentConfig.from_dict(data)
