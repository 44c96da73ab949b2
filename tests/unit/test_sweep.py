"""Unit tests for the candidate scale sweep."""

import random
from contextlib import contextmanager

import pytest
from adaptergym.core.samples import EvaluationSample
from adaptergym.core.state import RunState
from adaptergym.eval.harness import EvaluationHarness
from adaptergym.eval.sweep import BEST_ADAPTER_NAME, CandidateSweepEvaluator
from adaptergym.logging.run_logger import RunLogger
from adaptergym.store.checkpoint_store import CheckpointStore

GRID = [0.75, 1.0, 1.25, 1.6]
CANDIDATE = "adapter.last.pt"


class ThresholdScorer:
    def __init__(self, correct: int):
        self.correct = correct

    def predict(self, text: str) -> str:
        return "pos" if int(text.split("-")[1]) < self.correct else "neg"


class ScaleTableLoader:
    """Accuracy per scale (100 samples, so counts are percentages); None fails to load."""

    def __init__(self, table: dict[float, int | None]):
        self.table = table
        self.loaded: list[float] = []

    @contextmanager
    def load(self, artifact):
        self.loaded.append(artifact.scale)
        correct = self.table[artifact.scale]
        if correct is None:
            raise OSError("unreadable adapter")
        yield ThresholdScorer(correct)


@pytest.fixture
def samples():
    return tuple(EvaluationSample(f"text-{i}", "pos") for i in range(100))


@pytest.fixture
def store(tmp_path):
    store = CheckpointStore(tmp_path / "checkpoints")
    store.save(lambda p: p.write_bytes(b"candidate-1"), CANDIDATE)
    return store


def make_sweeper(store, table, tmp_path, improvements=None):
    loader = ScaleTableLoader(table)
    logger = RunLogger(run_dir=tmp_path / "run", echo=False)
    sweeper = CandidateSweepEvaluator(
        EvaluationHarness(loader),
        store,
        run_logger=logger,
        on_improvement=(lambda scale, result: improvements.append(scale)) if improvements is not None else None,
    )
    return sweeper, loader, logger


class TestCandidateSweep:
    def test_single_improvement_promoted(self, store, samples, tmp_path):
        state = RunState(best_observed_accuracy=46.0, initial_accuracy=46.0)
        sweeper, _, _ = make_sweeper(store, {0.75: 40, 1.0: 96, 1.25: 90, 1.6: 30}, tmp_path)

        result = sweeper.sweep(CANDIDATE, GRID, samples, state)

        assert result.improved
        assert state.best_observed_accuracy == pytest.approx(96.0)
        assert state.best_scale == 1.0
        assert store.path(BEST_ADAPTER_NAME).read_bytes() == b"candidate-1"

    def test_only_one_grid_point_exceeds(self, store, samples, tmp_path):
        improvements = []
        state = RunState(best_observed_accuracy=46.0)
        sweeper, _, _ = make_sweeper(store, {0.75: 40, 1.0: 45, 1.25: 60, 1.6: 46}, tmp_path, improvements)

        result = sweeper.sweep(CANDIDATE, GRID, samples, state)

        assert result.promotions == [1.25]
        assert improvements == [1.25]
        assert state.best_scale == 1.25
        assert store.exists(BEST_ADAPTER_NAME)

    def test_tie_keeps_earlier_best(self, store, samples, tmp_path):
        state = RunState(best_observed_accuracy=46.0)
        sweeper, _, _ = make_sweeper(store, {0.75: 60, 1.0: 60, 1.25: 60, 1.6: 10}, tmp_path)

        result = sweeper.sweep(CANDIDATE, GRID, samples, state)

        assert result.promotions == [0.75]
        assert state.best_scale == 0.75

    def test_equal_to_current_best_not_adopted(self, store, samples, tmp_path):
        state = RunState(best_observed_accuracy=60.0, best_scale=1.0)
        sweeper, _, _ = make_sweeper(store, {0.75: 60, 1.0: 60, 1.25: 59, 1.6: 0}, tmp_path)

        result = sweeper.sweep(CANDIDATE, GRID, samples, state)

        assert not result.improved
        assert state.best_scale == 1.0
        assert not store.exists(BEST_ADAPTER_NAME)

    def test_evaluates_every_point_with_multiple_promotions(self, store, samples, tmp_path):
        state = RunState(best_observed_accuracy=46.0)
        sweeper, loader, _ = make_sweeper(store, {0.75: 50, 1.0: 70, 1.25: 65, 1.6: 80}, tmp_path)

        result = sweeper.sweep(CANDIDATE, GRID, samples, state)

        assert loader.loaded == GRID
        assert result.promotions == [0.75, 1.0, 1.6]
        assert state.best_scale == 1.6
        assert result.best_accuracy == pytest.approx(80.0)

    def test_load_failure_aborts_rest_of_pass(self, store, samples, tmp_path):
        state = RunState(best_observed_accuracy=46.0)
        sweeper, loader, logger = make_sweeper(store, {0.75: 60, 1.0: None, 1.25: 99, 1.6: 99}, tmp_path)

        result = sweeper.sweep(CANDIDATE, GRID, samples, state)

        assert result.aborted
        assert loader.loaded == [0.75, 1.0]
        assert state.best_scale == 0.75
        assert state.best_observed_accuracy == pytest.approx(60.0)
        assert len(logger.read_events("sweep_aborted")) == 1

    def test_promotion_failure_not_adopted(self, samples, tmp_path):
        store = CheckpointStore(tmp_path / "empty")
        state = RunState(best_observed_accuracy=46.0)
        sweeper, _, logger = make_sweeper(store, {1.0: 90}, tmp_path)

        result = sweeper.sweep("missing.pt", [1.0], samples, state)

        assert not result.improved
        assert state.best_scale is None
        assert state.best_observed_accuracy == pytest.approx(46.0)
        assert logger.read_events("storage_failure")

    def test_best_accuracy_monotonic_across_sweeps(self, store, samples, tmp_path):
        rng = random.Random(11)
        state = RunState(best_observed_accuracy=46.0)
        history = [state.best_observed_accuracy]

        for _ in range(15):
            table = {scale: rng.randint(0, 100) for scale in GRID}
            sweeper, _, _ = make_sweeper(store, table, tmp_path)
            sweeper.sweep(CANDIDATE, GRID, samples, state)
            history.append(state.best_observed_accuracy)

        assert history == sorted(history)
