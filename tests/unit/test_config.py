"""Unit tests for experiment configuration."""

import tempfile
from datetime import timedelta
from pathlib import Path

import pytest
import yaml
from adaptergym.config import ExperimentConfig, load_experiment_config


class TestExperimentConfig:
    def test_defaults(self):
        config = ExperimentConfig.from_dict({"name": "sentiment", "data": {"train_path": "train.tsv"}})
        assert config.run_dir == str(Path("runs") / "sentiment")
        assert config.output_path == "sentiment.model.pt"
        assert config.trainer.batch_size == 8
        assert config.trainer.iteration_count == 1000
        assert config.trainer.context_size == 128
        assert config.stopping.loss_floor == 0.01
        assert config.stopping.max_duration == timedelta(hours=24)
        assert config.evaluation.scale_grid == [0.75, 1.0, 1.25, 1.6]
        assert config.data.eval_seed == 2524
        assert config.data.train_seed == 5001

    def test_store_dir_under_run_dir(self):
        config = ExperimentConfig.from_dict({"name": "x", "run_dir": "out/x", "data": {"train_path": "t"}})
        assert config.store_dir == Path("out/x") / "checkpoints"

    def test_round_trip_dict(self):
        data = {
            "name": "exp",
            "run_dir": "runs/exp",
            "output_path": "exp.pt",
            "data": {"train_path": "train.tsv", "eval_path": "eval.tsv", "eval_max_samples": 50},
            "trainer": {"batch_size": 4, "iteration_count": 20, "resume_from_checkpoint": "ckpt.pt"},
            "stopping": {"loss_floor": 0.05, "max_duration_hours": 2},
            "evaluation": {"scale_grid": [1, 2], "evaluate_every": 5},
            "checkpoints": {"recovery_every": 3},
        }
        config = ExperimentConfig.from_dict(data)
        again = ExperimentConfig.from_dict(config.to_dict())
        assert again.to_dict() == config.to_dict()
        assert config.evaluation.scale_grid == [1.0, 2.0]
        assert config.trainer.resume_from_checkpoint == "ckpt.pt"

    def test_missing_train_path(self):
        with pytest.raises(ValueError, match="train_path"):
            ExperimentConfig.from_dict({"name": "x"})

    def test_empty_scale_grid(self):
        with pytest.raises(ValueError, match="scale_grid"):
            ExperimentConfig.from_dict({"name": "x", "data": {"train_path": "t"}, "evaluation": {"scale_grid": []}})

    def test_load_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "exp.yaml"
            path.write_text(yaml.safe_dump({
                "name": "yaml-exp",
                "data": {"train_path": "train.tsv"},
                "stopping": {"loss_floor": 0.2},
            }))
            config = load_experiment_config(path)
        assert config.name == "yaml-exp"
        assert config.stopping.loss_floor == 0.2

    def test_load_yaml_not_mapping(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "exp.yaml"
            path.write_text("- just\n- a list\n")
            with pytest.raises(ValueError):
                load_experiment_config(path)
