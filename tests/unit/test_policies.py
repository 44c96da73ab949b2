"""Unit tests for stopping and cadence policies."""

from datetime import timedelta

import pytest
from adaptergym.core.events import ProgressEvent
from adaptergym.experiment.policies import (
    AnyCadence,
    CompletionCadence,
    IterationCadence,
    LossGate,
    StoppingConfig,
    StoppingPolicy,
)


def make_event(iteration: int, percentage: float = 50.0, loss: float = 1.0) -> ProgressEvent:
    return ProgressEvent(
        iteration=iteration,
        iteration_count=100,
        epoch=0,
        percentage=percentage,
        loss=loss,
        best_loss=loss,
        elapsed=timedelta(seconds=iteration),
    )


class TestStoppingPolicy:
    @pytest.fixture
    def policy(self):
        return StoppingPolicy(StoppingConfig(loss_floor=0.01, max_duration=timedelta(hours=24)))

    def test_loss_sequence_stops_only_at_floor(self, policy):
        losses = [3.0, 1.8, 0.9, 0.009]
        decisions = [
            policy.should_stop(i, loss, timedelta(minutes=5))
            for i, loss in enumerate(losses, start=1)
        ]
        assert decisions == [False, False, False, True]

    def test_first_iteration_never_stops_on_loss(self, policy):
        assert not policy.should_stop(1, 0.0, timedelta(0))
        assert not policy.should_stop(0, 0.001, timedelta(0))
        assert policy.should_stop(2, 0.001, timedelta(0))

    def test_loss_equal_to_floor_stops(self, policy):
        assert policy.should_stop(5, 0.01, timedelta(0))

    def test_duration_trigger_ignores_loss(self, policy):
        assert policy.should_stop(3, 5.0, timedelta(hours=25))
        assert policy.stop_reason(3, 5.0, timedelta(hours=25)) == "maximum training duration reached"

    def test_duration_must_be_exceeded(self, policy):
        assert not policy.should_stop(3, 5.0, timedelta(hours=24))

    def test_loss_trigger_ignores_duration(self, policy):
        for elapsed in (timedelta(0), timedelta(hours=1), timedelta(hours=30)):
            assert policy.should_stop(10, 0.005, elapsed)

    def test_either_trigger_is_sufficient(self, policy):
        assert policy.should_stop(10, 0.005, timedelta(hours=30))
        assert policy.stop_reason(10, 0.005, timedelta(hours=30)) == "minimum loss reached"
        assert policy.stop_reason(10, 1.0, timedelta(hours=1)) is None

    def test_pure(self, policy):
        args = (7, 0.5, timedelta(hours=2))
        assert [policy.should_stop(*args) for _ in range(3)] == [False, False, False]

    def test_default_config(self):
        policy = StoppingPolicy()
        assert policy.config.loss_floor == 0.01
        assert policy.config.max_duration == timedelta(hours=24)

    def test_config_from_dict(self):
        config = StoppingConfig.from_dict({"loss_floor": 0.1, "max_duration_hours": 0.5})
        assert config.max_duration == timedelta(minutes=30)
        assert config.to_dict() == {"loss_floor": 0.1, "max_duration_hours": 0.5}


class TestCadences:
    def test_iteration_cadence(self):
        cadence = IterationCadence(10)
        assert [i for i in range(1, 31) if cadence.due(make_event(i))] == [10, 20, 30]

    def test_iteration_cadence_disabled(self):
        cadence = IterationCadence(0)
        assert not any(cadence.due(make_event(i)) for i in range(1, 20))

    def test_completion_cadence(self):
        cadence = CompletionCadence()
        assert cadence.due(make_event(7, percentage=100.0))
        assert not cadence.due(make_event(7, percentage=99.9))

    def test_any_cadence(self):
        cadence = AnyCadence(IterationCadence(10), CompletionCadence())
        assert cadence.due(make_event(10))
        assert cadence.due(make_event(13, percentage=100.0))
        assert not cadence.due(make_event(13))

    def test_loss_gate(self):
        gate = LossGate(2.0)
        assert gate.is_open(1.99)
        assert not gate.is_open(2.0)
        assert not gate.is_open(3.5)
