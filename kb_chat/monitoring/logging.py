"""Structured logging for chat turns and pipeline stages.

Each stage (ingestion, retrieval, completion, evaluation_turn) is timed by
``ComponentLogger.component`` and emitted as one JSON entry. A chat turn
ends with a ``turn`` entry summarising the stages it ran.

Entries go to the Python logger; when ``KB_LOG_DIR`` (or ``log_dir``) is
set they are also appended to ``kb_chat_<date>.jsonl`` in that directory.
"""

import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from kb_chat.monitoring.tracing import get_current_trace_id

logger = logging.getLogger(__name__)

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
session_id_ctx: ContextVar[str] = ContextVar("session_id", default="")

LOG_DIR_ENV = "KB_LOG_DIR"
LOG_FILE_PREFIX = "kb_chat"


def new_request_context(session_id: Optional[str] = None) -> str:
    """Start a new chat turn with a fresh correlation id.

    Args:
        session_id: Chat session the turn belongs to

    Returns:
        Generated request id
    """
    request_id = uuid.uuid4().hex[:8]
    request_id_ctx.set(request_id)
    if session_id:
        session_id_ctx.set(session_id)
    return request_id


def log_file_for(log_dir: Path, date: Optional[str] = None) -> Path:
    """JSONL file holding the entries for one day (default: today)."""
    date = date or datetime.now().strftime("%Y-%m-%d")
    return log_dir / f"{LOG_FILE_PREFIX}_{date}.jsonl"


@dataclass
class ComponentResult:
    """Outcome and custom fields of one stage."""

    success: bool = False
    error: Optional[str] = None
    error_type: Optional[str] = None
    data: dict = field(default_factory=dict)

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value

    def __getitem__(self, key: str) -> Any:
        return self.data.get(key)


class ComponentLogger:
    """Times pipeline stages and writes one structured entry per stage.

    Between ``start_turn`` and ``log_turn`` stage outcomes are also kept,
    and ``log_turn`` writes them as a single summary of the chat turn.
    Stages logged outside a turn (e.g. CLI ingestion) are not collected.
    """

    def __init__(self, service: str = "kb-chat", log_dir: Optional[Path] = None):
        """Initialize the logger.

        Args:
            service: Service label written on every entry
            log_dir: Directory for JSONL files (default: $KB_LOG_DIR, else no file output)
        """
        self.service = service
        if log_dir is None and os.getenv(LOG_DIR_ENV):
            log_dir = Path(os.environ[LOG_DIR_ENV])
        self.log_dir = log_dir
        self.last_entry: Optional[dict] = None
        self._turn_stages: dict[str, dict] = {}
        self._in_turn = False

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def component(self, name: str, **context):
        """Time a stage and log its outcome.

        Args:
            name: Stage name (e.g. 'ingestion', 'retrieval')
            **context: Extra fields for the entry

        Yields:
            ComponentResult to attach stage-specific fields to
        """
        start = time.perf_counter()
        result = ComponentResult()
        try:
            yield result
            result.success = True
        except Exception as e:
            result.error = str(e)
            result.error_type = type(e).__name__
            raise
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            self._log_component(name, duration_ms, result, context)

    def _base_entry(self, component: str, success: bool, duration_ms: int) -> dict:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": self.service,
            "request_id": request_id_ctx.get(),
            "session_id": session_id_ctx.get(),
            "trace_id": get_current_trace_id(),
            "severity": "INFO" if success else "ERROR",
            "component": component,
            "success": success,
            "duration_ms": duration_ms,
        }

    def _log_component(
        self,
        component: str,
        duration_ms: int,
        result: ComponentResult,
        context: dict,
    ) -> None:
        entry = self._base_entry(component, result.success, duration_ms)
        if result.error:
            entry["error"] = result.error
            entry["error_type"] = result.error_type
        entry.update(result.data)
        entry.update(context)

        if self._in_turn:
            self._turn_stages[component] = {
                "success": result.success,
                "duration_ms": duration_ms,
                **result.data,
            }
        self._write(entry)

    def start_turn(self, session_id: Optional[str] = None) -> str:
        """Begin collecting stages for a chat turn under a fresh request id."""
        self._turn_stages = {}
        self._in_turn = True
        return new_request_context(session_id)

    def log_turn(
        self,
        mode: str,
        success: bool,
        duration_ms: int,
        outcome: Optional[str] = None,
    ) -> dict:
        """Write the summary entry for a chat turn and clear the stage buffer.

        Args:
            mode: 'qa' or 'evaluation'
            success: Whether the turn produced a normal reply
            duration_ms: Total turn time
            outcome: Short label for non-normal replies (e.g. 'rate_limit')

        Returns:
            The written entry
        """
        entry = self._base_entry("turn", success, duration_ms)
        entry["mode"] = mode
        entry["stages"] = self._turn_stages
        if outcome:
            entry["outcome"] = outcome
        self._turn_stages = {}
        self._in_turn = False
        self._write(entry)
        return entry

    def _write(self, entry: dict) -> None:
        self.last_entry = entry
        line = json.dumps(entry, default=str)
        logger.log(logging.ERROR if entry["severity"] == "ERROR" else logging.DEBUG, line)

        if self.log_dir is not None:
            with open(self.get_log_file_path(), "a") as f:
                f.write(line + "\n")

    def get_log_file_path(self, date: Optional[str] = None) -> Path:
        """Path of the JSONL file for a date (YYYY-MM-DD, default today)."""
        if self.log_dir is None:
            raise ValueError("File logging is not enabled")
        return log_file_for(self.log_dir, date)


def read_logs(
    log_dir: Path,
    date: Optional[str] = None,
    component: Optional[str] = None,
) -> list[dict]:
    """Read entries back from a day's JSONL file.

    Args:
        log_dir: Directory containing logs
        date: Date to read (YYYY-MM-DD), defaults to today
        component: Only return entries for this stage

    Returns:
        Log entries in write order
    """
    log_file = log_file_for(log_dir, date)
    if not log_file.exists():
        return []

    with open(log_file) as f:
        entries = [json.loads(line) for line in f if line.strip()]
    if component is None:
        return entries
    return [e for e in entries if e.get("component") == component]
