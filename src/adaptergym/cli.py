"""AdapterGym CLI - supervised adapter fine-tuning."""

import sys
from dataclasses import replace
from pathlib import Path

import click

from adaptergym.config import ExperimentConfig, load_experiment_config
from adaptergym.core.errors import AdapterGymError, TrainerFailure
from adaptergym.core.samples import build_sample_set, load_labeled_samples
from adaptergym.eval.harness import EvalResult, EvaluationHarness
from adaptergym.experiment.controller import (
    RECOVERY_CHECKPOINT_NAME,
    RECOVERY_STATE_NAME,
    ExperimentController,
)
from adaptergym.logging.run_logger import RunLogger
from adaptergym.recovery import GracefulShutdown, RecoveryState
from adaptergym.store.checkpoint_store import CheckpointStore
from adaptergym.train.adapters.base import ArtifactRef


def _load_base(config: ExperimentConfig, labels: list[str]):
    from adaptergym.train.adapters.torch_lora import BaseClassifier

    if config.model.base_path:
        return BaseClassifier.load(config.model.base_path)

    base_path = Path(config.run_dir) / "base.pt"
    if base_path.exists():
        return BaseClassifier.load(base_path)
    base = BaseClassifier.initialize(labels, config.model.num_features, config.model.seed)
    base_path.parent.mkdir(parents=True, exist_ok=True)
    base.save(base_path)
    return base


def _eval_samples(config: ExperimentConfig):
    source = load_labeled_samples(config.data.eval_path or config.data.train_path)
    return build_sample_set(source, config.data.eval_max_samples, seed=config.data.eval_seed)


def _bell(scale: float, evaluation: EvalResult) -> None:
    click.echo("\a", nl=False)


@click.group()
@click.version_option()
def main() -> None:
    """AdapterGym: adapter fine-tuning with held-out model selection."""
    pass


@main.command()
@click.option("--config", "-c", "config_path", required=True, help="Path to experiment config YAML")
@click.option("--resume", is_flag=True, help="Resume from the last recovery checkpoint")
def run(config_path: str, resume: bool) -> None:
    """Fine-tune an adapter and keep the most accurate one."""
    from adaptergym.train.adapters.torch_lora import TorchLoraLoader, TorchLoraMerger, TorchLoraTrainer

    config = load_experiment_config(config_path)
    run_logger = RunLogger(run_dir=config.run_dir, run_id=config.name)
    run_logger.log_config(config.to_dict())

    train_samples = build_sample_set(
        load_labeled_samples(config.data.train_path),
        config.data.train_max_samples,
        seed=config.data.train_seed,
    )
    eval_samples = _eval_samples(config)
    base = _load_base(config, [s.label for s in train_samples + eval_samples])

    store = CheckpointStore(config.store_dir)
    trainer_config = config.trainer
    resume_state = None
    if resume:
        if not store.exists(RECOVERY_CHECKPOINT_NAME):
            raise click.ClickException(f"No recovery checkpoint in {store.base_path}")
        trainer_config = replace(trainer_config, resume_from_checkpoint=str(store.path(RECOVERY_CHECKPOINT_NAME)))
        resume_state = RecoveryState.load(store.path(RECOVERY_STATE_NAME))

    controller = ExperimentController(
        trainer=TorchLoraTrainer(base, train_samples, config.model.rank,
                                 config.model.learning_rate, config.model.seed),
        harness=EvaluationHarness(TorchLoraLoader(base)),
        store=store,
        finalizer=TorchLoraMerger(base),
        samples=eval_samples,
        output_path=config.output_path,
        trainer_config=trainer_config,
        stopping=config.stopping,
        evaluation=config.evaluation,
        checkpoints=config.checkpoints,
        run_logger=run_logger,
        resume_state=resume_state,
        on_improvement=_bell,
    )
    shutdown = GracefulShutdown(controller.token)
    shutdown.install_handlers()

    try:
        report = controller.run()
    except TrainerFailure as e:
        click.secho(f"Experiment failed: {e}", fg="red")
        sys.exit(1)
    finally:
        shutdown.restore_handlers()

    if not report.success:
        sys.exit(1)


@main.command("eval")
@click.option("--config", "-c", "config_path", required=True, help="Path to experiment config YAML")
@click.option("--adapter", "-a", help="Adapter path (omit to score the base model)")
@click.option("--scale", "-s", default=1.0, type=float, help="Adapter scale")
def evaluate(config_path: str, adapter: str | None, scale: float) -> None:
    """Score one artifact on the fixed evaluation set."""
    from adaptergym.train.adapters.torch_lora import TorchLoraLoader

    config = load_experiment_config(config_path)
    samples = _eval_samples(config)
    base = _load_base(config, [s.label for s in samples])
    artifact = ArtifactRef(Path(adapter) if adapter else None, scale)

    try:
        result = EvaluationHarness(TorchLoraLoader(base)).evaluate(artifact, samples)
    except AdapterGymError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"{artifact.label}: accuracy {round(result.accuracy, 2):.2f}% - "
        f"{round(result.samples_per_second, 2)} samples/s ({result.sample_count} samples)"
    )


if __name__ == "__main__":
    main()
