"""Labeled sample loading and fixed evaluation sets."""

import json
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


@dataclass(frozen=True)
class EvaluationSample:
    """A labeled text sample."""

    text: str
    label: str

    @property
    def token_count(self) -> int:
        return len(self.text.split())


def load_labeled_samples(path: str | Path) -> list[EvaluationSample]:
    """Load labeled samples from a JSONL or tab-separated file.

    JSONL lines carry ``{"text": ..., "label": ...}``; any other suffix is
    read as ``text<TAB>label`` per line. Blank lines are skipped.

    Raises:
        ValueError: On a malformed line (the message names the line number)
    """
    path = Path(path)
    samples: list[EvaluationSample] = []

    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            if path.suffix == ".jsonl":
                try:
                    record = json.loads(line)
                    samples.append(EvaluationSample(text=str(record["text"]), label=str(record["label"])))
                except (json.JSONDecodeError, KeyError, TypeError) as e:
                    raise ValueError(f"{path}:{line_no}: invalid record: {e}") from e
            else:
                text, sep, label = line.rstrip("\n").rpartition("\t")
                if not sep or not label.strip():
                    raise ValueError(f"{path}:{line_no}: expected 'text<TAB>label'")
                samples.append(EvaluationSample(text=text.strip(), label=label.strip()))

    return samples


def build_sample_set(
    samples: Iterable[EvaluationSample],
    max_samples: int | None = None,
    seed: int = 42,
    shuffle: bool = True,
) -> tuple[EvaluationSample, ...]:
    """Build a fixed, read-only sample set.

    The source is copied, shuffled with a seeded RNG and capped, so the
    same source, seed and cap always produce the same order and content.
    """
    pool = list(samples)
    if shuffle:
        rng = random.Random(seed)
        rng.shuffle(pool)
    if max_samples is not None and max_samples >= 0:
        pool = pool[:max_samples]
    return tuple(pool)


def filter_by_length(
    samples: Iterable[EvaluationSample],
    min_tokens: int = 0,
    max_tokens: int | None = None,
) -> list[EvaluationSample]:
    """Keep samples whose token count fits in [min_tokens, max_tokens]."""
    kept = []
    for sample in samples:
        n = sample.token_count
        if n < min_tokens:
            continue
        if max_tokens is not None and n > max_tokens:
            continue
        kept.append(sample)
    return kept
