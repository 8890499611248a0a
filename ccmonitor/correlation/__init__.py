from ccmonitor.correlation.correlator import CorrelationState, IdentityCorrelator
from ccmonitor.correlation.scorers import (
    EventSignals,
    LabelScorer,
    build_scorers,
    character_similarity,
    start_time_score,
    working_directory_score,
)

__all__ = [
    "CorrelationState",
    "EventSignals",
    "IdentityCorrelator",
    "LabelScorer",
    "build_scorers",
    "character_similarity",
    "start_time_score",
    "working_directory_score",
]
