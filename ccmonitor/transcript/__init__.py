from ccmonitor.transcript.pricing import DEFAULT_RATE, PriceTable
from ccmonitor.transcript.reader import TranscriptStore, project_label, summarize_task

__all__ = ["DEFAULT_RATE", "PriceTable", "TranscriptStore", "project_label", "summarize_task"]
