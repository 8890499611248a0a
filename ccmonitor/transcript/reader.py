"""Transcript store — task labels, token usage and metadata from JSONL transcripts."""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional

from ccmonitor.errors import ParseError
from ccmonitor.models import TokenUsage, TranscriptCacheEntry, TranscriptMetadata
from ccmonitor.paths import normalize_directory
from ccmonitor.transcript.pricing import PriceTable

logger = logging.getLogger(__name__)

# Leading phrases that carry no task information
_ACTION_PHRASES = [
    "help me", "can you", "please", "i need", "i want", "create", "build", "fix",
    "debug", "implement", "add", "update", "modify", "refactor", "analyze", "explain",
]
_FILLER_PREFIXES = ["help me ", "can you ", "please ", "i need to ", "i want to "]
_WHITESPACE_RE = re.compile(r"\s+")

_METADATA_SCAN_LIMIT = 50


def parse_record(line: str) -> dict[str, Any]:
    """Decode one JSONL line. Raises ParseError for non-object or invalid JSON."""
    try:
        record = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON at column {exc.colno}") from exc
    if not isinstance(record, dict):
        raise ParseError(f"expected object, got {type(record).__name__}")
    return record


def iter_records(path: str | Path) -> Iterator[dict[str, Any]]:
    """Yield decoded records, skipping blank and unparsable lines."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield parse_record(line)
                except ParseError as exc:
                    logger.debug("Skipping %s:%d (%s)", path, lineno, exc)
    except OSError as exc:
        logger.debug("Cannot read transcript %s: %s", path, exc)


def message_text(content: Any) -> Optional[str]:
    """Plain text of a message body: a string or a list of text blocks."""
    if isinstance(content, str):
        return content.strip() or None
    if isinstance(content, list):
        parts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        text = " ".join(p for p in parts if p).strip()
        return text or None
    return None


def summarize_task(message: str, max_length: int = 60) -> str:
    """Clean and truncate a user message into a short task label."""
    summary = _WHITESPACE_RE.sub(" ", message).strip()

    lowered = summary.lower()
    starts = [idx for idx in (lowered.find(p) for p in _ACTION_PHRASES) if idx != -1]
    if starts:
        summary = summary[min(starts):]

    if len(summary) > max_length:
        # Eight words, but never more than max_length characters of them.
        summary = " ".join(summary.split(" ")[:8])[:max_length].rstrip() + "..."

    stripped = True
    while stripped:
        stripped = False
        for prefix in _FILLER_PREFIXES:
            if summary.lower().startswith(prefix):
                summary = summary[len(prefix):]
                stripped = True

    return summary[:1].upper() + summary[1:]


def project_label(transcript_path: str) -> str:
    """
    Project name encoded in a transcript path.

    ``~/.claude/projects/-Users-me-dev-my-project/<id>.jsonl`` yields
    ``my-project``; paths outside ``projects/`` fall back to the file stem.
    """
    path = Path(transcript_path)
    parts = path.parts
    if "projects" in parts:
        idx = parts.index("projects")
        if idx + 1 < len(parts) - 1:
            segments = parts[idx + 1].split("-")
            if len(segments) > 4:
                return "-".join(segments[4:])
    return path.stem


def encode_project_dir(directory: str) -> str:
    """Directory name the CLI uses under ``projects/`` for a working directory."""
    return re.sub(r"[^A-Za-z0-9-]", "-", directory)


class TranscriptStore:
    """
    Reads transcripts and caches extraction results by file path.

    Entries persist until ``clear_cache`` is called; refresh is on demand,
    so stale values are expected between refreshes.
    """

    def __init__(self, prices: Optional[PriceTable] = None, max_task_length: int = 60):
        self.prices = prices or PriceTable()
        self.max_task_length = max_task_length
        self._cache: dict[str, TranscriptCacheEntry] = {}
        self._lock = threading.Lock()

    def _entry(self, path: str) -> TranscriptCacheEntry:
        with self._lock:
            entry = self._cache.get(path)
            if entry is None:
                entry = self._cache[path] = TranscriptCacheEntry()
            return entry

    def cached(self, path: str) -> Optional[TranscriptCacheEntry]:
        with self._lock:
            return self._cache.get(path)

    def clear_cache(self, path: Optional[str] = None) -> None:
        """Drop cached results for one transcript, or for all of them."""
        with self._lock:
            if path is None:
                self._cache.clear()
            else:
                self._cache.pop(path, None)

    # ── Task description ────────────────────────────────────

    def task_description(self, path: str) -> Optional[str]:
        """Latest summary record, else the latest user message, cleaned."""
        entry = self._entry(path)
        if entry.task_loaded:
            return entry.task_description

        summary: Optional[str] = None
        last_user: Optional[str] = None
        for record in iter_records(path):
            kind = record.get("type")
            if kind == "summary":
                value = record.get("summary")
                if isinstance(value, str) and value.strip():
                    summary = value.strip()
            elif kind in ("user", "conversation"):
                message = record.get("message")
                if isinstance(message, dict) and message.get("role") == "user":
                    text = message_text(message.get("content"))
                    if text:
                        last_user = text

        if summary is not None:
            description = summary
        elif last_user is not None:
            description = summarize_task(last_user, self.max_task_length)
        else:
            logger.debug("No summary or user message in %s", path)
            return None

        entry.task_description = description
        entry.task_loaded = True
        return description

    # ── Usage ───────────────────────────────────────────────

    def usage(self, path: str) -> TokenUsage:
        """Sum input/output tokens over the whole transcript."""
        entry = self._entry(path)
        if entry.usage is not None:
            return entry.usage

        total_in = 0
        total_out = 0
        model: Optional[str] = None
        for record in iter_records(path):
            message = record.get("message")
            if not isinstance(message, dict):
                continue

            name = message.get("model")
            if model is None and isinstance(name, str) and name and not name.startswith("<"):
                model = name

            usage = message.get("usage")
            if not isinstance(usage, dict):
                continue
            # cache_creation_input_tokens / cache_read_input_tokens are not counted
            total_in += _token_count(usage.get("input_tokens"))
            total_out += _token_count(usage.get("output_tokens"))

        entry.usage = TokenUsage(input_tokens=total_in, output_tokens=total_out, detected_model=model)
        return entry.usage

    def cost(self, input_tokens: int, output_tokens: int, model: Optional[str] = None) -> float:
        return self.prices.cost(input_tokens, output_tokens, model)

    # ── Metadata ────────────────────────────────────────────

    def session_info(self, path: str) -> TranscriptMetadata:
        """``sessionId`` and ``cwd`` from the first records that carry them."""
        entry = self._entry(path)
        if entry.metadata is not None:
            return entry.metadata

        for index, record in enumerate(iter_records(path)):
            if index >= _METADATA_SCAN_LIMIT:
                break
            session_id = record.get("sessionId")
            cwd = record.get("cwd")
            if isinstance(session_id, str) or isinstance(cwd, str):
                entry.metadata = TranscriptMetadata(
                    session_id=session_id if isinstance(session_id, str) else None,
                    cwd=cwd if isinstance(cwd, str) else None,
                )
                return entry.metadata

        # Not cached: the file may not have its metadata written yet.
        return TranscriptMetadata()

    def working_directory(self, path: str) -> Optional[str]:
        return normalize_directory(self.session_info(path).cwd)

    def find_for_directory(self, directory: str, projects_dir: Path) -> Optional[str]:
        """Most recently modified transcript whose recorded cwd is ``directory``."""
        target = normalize_directory(directory)
        if target is None or not projects_dir.is_dir():
            return None

        encoded = projects_dir / encode_project_dir(target)
        search_root = encoded if encoded.is_dir() else projects_dir
        try:
            files = sorted(
                search_root.rglob("*.jsonl"),
                key=lambda p: p.stat().st_mtime,
                reverse=True,
            )
        except OSError as exc:
            logger.debug("Cannot list transcripts under %s: %s", search_root, exc)
            return None

        for candidate in files:
            if self.working_directory(str(candidate)) == target:
                return str(candidate)
        return None


def _token_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value
