"""Unit tests for labeled sample loading and fixed sample sets."""

import json
import tempfile
from pathlib import Path

import pytest
from adaptergym.core.samples import (
    EvaluationSample,
    build_sample_set,
    filter_by_length,
    load_labeled_samples,
)


@pytest.fixture
def source():
    return [EvaluationSample(text=f"sample number {i}", label="pos" if i % 2 else "neg") for i in range(50)]


class TestBuildSampleSet:
    def test_deterministic_with_seed(self, source):
        first = build_sample_set(source, max_samples=20, seed=2524)
        second = build_sample_set(list(source), max_samples=20, seed=2524)
        assert first == second

    def test_different_seed_changes_order(self, source):
        assert build_sample_set(source, seed=1) != build_sample_set(source, seed=2)

    def test_capped(self, source):
        assert len(build_sample_set(source, max_samples=10, seed=3)) == 10
        assert len(build_sample_set(source, max_samples=500, seed=3)) == 50

    def test_immutable_and_source_untouched(self, source):
        original = list(source)
        result = build_sample_set(source, seed=9)
        assert isinstance(result, tuple)
        assert source == original
        assert sorted(result, key=lambda s: s.text) == sorted(source, key=lambda s: s.text)

    def test_no_shuffle_keeps_order(self, source):
        assert build_sample_set(source, max_samples=3, shuffle=False) == tuple(source[:3])


class TestLoadLabeledSamples:
    def test_load_tsv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data.tsv"
            path.write_text("Great phone\t1\n\nBattery died fast\t0\n")
            samples = load_labeled_samples(path)
        assert samples == [
            EvaluationSample("Great phone", "1"),
            EvaluationSample("Battery died fast", "0"),
        ]

    def test_load_jsonl(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data.jsonl"
            path.write_text(
                json.dumps({"text": "Loved it", "label": "positive"}) + "\n"
                + json.dumps({"text": "Awful", "label": "negative"}) + "\n"
            )
            samples = load_labeled_samples(path)
        assert [s.label for s in samples] == ["positive", "negative"]

    def test_malformed_line_reports_line_number(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data.tsv"
            path.write_text("ok\t1\nno label here\n")
            with pytest.raises(ValueError, match=":2:"):
                load_labeled_samples(path)

    def test_malformed_jsonl(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data.jsonl"
            path.write_text('{"text": "missing label"}\n')
            with pytest.raises(ValueError):
                load_labeled_samples(path)


class TestFilterByLength:
    def test_filters_outside_window(self):
        samples = [
            EvaluationSample("one", "a"),
            EvaluationSample("one two three", "a"),
            EvaluationSample("one two three four five", "a"),
        ]
        kept = filter_by_length(samples, min_tokens=2, max_tokens=3)
        assert [s.token_count for s in kept] == [3]

    def test_no_upper_bound(self):
        samples = [EvaluationSample("word " * 500, "a")]
        assert filter_by_length(samples) == samples
