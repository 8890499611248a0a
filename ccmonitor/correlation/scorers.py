"""
Independent scoring signals for binding a hook session to a process.

Each scorer is a pure function ``(candidate, signals) -> confidence`` in
[0, 1]; the correlator takes the maximum across scorers.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Optional

from ccmonitor.config import CorrelationConfig
from ccmonitor.models import MappingMethod, ProcessIdentity
from ccmonitor.paths import normalize_directory

_START_TIME_DECAY_SECONDS = 60.0


@dataclass(frozen=True)
class EventSignals:
    """Evidence gathered once per resolution from the event and its transcript."""

    logical_session_id: str
    first_seen: datetime
    working_directory: Optional[str] = None
    label: Optional[str] = None


Scorer = Callable[[ProcessIdentity, EventSignals], float]
SimilarityScorer = Callable[[str, str], float]
LabelProvider = Callable[[ProcessIdentity], Optional[str]]


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def character_similarity(a: str, b: str) -> float:
    """Exact 1.0, substring 0.8, else shared distinct characters over the longer length."""
    s1 = a.lower()
    s2 = b.lower()
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.8
    longest = max(len(s1), len(s2))
    if longest == 0:
        return 0.0
    return len(set(s1) & set(s2)) / longest


def directory_label(candidate: ProcessIdentity) -> Optional[str]:
    """Default candidate label: the last component of its working directory."""
    if not candidate.working_directory:
        return None
    return os.path.basename(candidate.working_directory.rstrip(os.sep)) or None


def working_directory_score(
    candidate: ProcessIdentity,
    signals: EventSignals,
    confidence: float = 0.95,
) -> float:
    if signals.working_directory is None:
        return 0.0
    if normalize_directory(candidate.working_directory) == signals.working_directory:
        return clamp(confidence)
    return 0.0


def start_time_score(
    candidate: ProcessIdentity,
    signals: EventSignals,
    window_seconds: float = 30.0,
    max_confidence: float = 0.9,
    floor: float = 0.5,
) -> float:
    diff = abs((signals.first_seen - candidate.start_time).total_seconds())
    if diff >= window_seconds:
        return 0.0
    return clamp(max(floor, max_confidence - diff / _START_TIME_DECAY_SECONDS))


class LabelScorer:
    """Compares the transcript's project label with a label for the candidate."""

    def __init__(
        self,
        similarity: SimilarityScorer = character_similarity,
        label_for: LabelProvider = directory_label,
        weight: float = 0.7,
        threshold: float = 0.3,
    ):
        self.similarity = similarity
        self.label_for = label_for
        self.weight = weight
        self.threshold = threshold

    def __call__(self, candidate: ProcessIdentity, signals: EventSignals) -> float:
        if not signals.label:
            return 0.0
        label = self.label_for(candidate)
        if not label:
            return 0.0
        score = clamp(self.similarity(signals.label, label))
        if score <= self.threshold:
            return 0.0
        return clamp(score * self.weight)


def build_scorers(
    config: Optional[CorrelationConfig] = None,
    similarity: SimilarityScorer = character_similarity,
    label_for: LabelProvider = directory_label,
) -> list[tuple[MappingMethod, Scorer]]:
    """Scorers in evaluation order; earlier entries win ties."""
    config = config or CorrelationConfig()
    return [
        (
            MappingMethod.WORKING_DIRECTORY,
            partial(working_directory_score, confidence=config.working_directory_confidence),
        ),
        (
            MappingMethod.START_TIME,
            partial(
                start_time_score,
                window_seconds=config.start_time_window_seconds,
                max_confidence=config.start_time_max_confidence,
                floor=config.start_time_floor,
            ),
        ),
        (
            MappingMethod.LABEL,
            LabelScorer(
                similarity=similarity,
                label_for=label_for,
                weight=config.label_weight,
                threshold=config.label_threshold,
            ),
        ),
    ]
