# src/meeting_taskbot/meeting/extraction.py

"""
Meeting task extraction.

Turns a buffered meeting transcript into candidate tasks through one LLM call:
- strict schema: {"tasks": [{content, assignee, priority, due_date, type}]},
- any failure (transport, timeout, bad JSON, wrong shape) yields [],
- candidates without content are dropped here; priority is passed through raw.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..core.ports import LLMClient
from .session_recorder import SessionEntry

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """
你是企業會議任務提取專家。分析對話內容，提取出明確的任務、行動項目和責任分配。

輸出格式為 JSON（只輸出 JSON，不要 Markdown，不要其他文字）：
{
  "tasks": [
    {
      "content": "任務描述",
      "assignee": "負責人姓名",
      "priority": "high|normal|low",
      "due_date": "預計完成日期（YYYY-MM-DD）",
      "type": "任務類型"
    }
  ]
}

只提取明確的任務，忽略閒聊和討論性內容。
沒有任務時輸出：{"tasks": []}
""".strip()

_OPTIONAL_FIELDS = ("assignee", "priority", "due_date", "type")


@dataclass(frozen=True, slots=True)
class CandidateTask:
    content: str
    assignee: str | None = None
    priority: str | None = None
    due_date: str | None = None
    type: str | None = None


class ExtractionFormatError(ValueError):
    """The model answer does not match the task-list schema."""


def build_transcript(entries: Iterable[SessionEntry]) -> str:
    """One "speaker：utterance" line per buffered message."""
    return "\n".join(f"{e.display_name}：{e.message}" for e in entries)


def _extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = raw.strip("`").strip()
        if raw.lower().startswith("json"):
            raw = raw[4:].strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _optional_str(item: dict[str, Any], name: str) -> str | None:
    val = item.get(name)
    if val is None:
        return None
    if not isinstance(val, str):
        raise ExtractionFormatError(f"field {name!r} must be a string, got {type(val).__name__}")
    val = val.strip()
    return val or None


def parse_extraction_response(raw: str) -> list[CandidateTask]:
    """
    Validate a model answer against the task-list schema.

    Raises ExtractionFormatError (or json.JSONDecodeError) when the shape is wrong.
    Items without a usable content string are skipped, not treated as errors.
    """
    data = json.loads(_extract_json_object(raw or ""))
    if not isinstance(data, dict) or "tasks" not in data:
        raise ExtractionFormatError("expected an object with a 'tasks' key")

    items = data["tasks"]
    if not isinstance(items, list):
        raise ExtractionFormatError("'tasks' must be a list")

    out: list[CandidateTask] = []
    for item in items:
        if not isinstance(item, dict):
            raise ExtractionFormatError("every task must be an object")

        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            logger.debug("Dropping candidate without content: %r", item)
            continue

        fields = {name: _optional_str(item, name) for name in _OPTIONAL_FIELDS}
        out.append(CandidateTask(content=content.strip(), **fields))
    return out


class TaskExtractor:
    """
    Runs the blocking LLM call in a worker thread with a hard deadline,
    so a stalled request never holds up other conversations.
    """

    def __init__(self, llm: LLMClient, *, timeout_seconds: float = 60.0) -> None:
        self._llm = llm
        self._timeout = max(1.0, float(timeout_seconds))

    def _call(self, dialogue_text: str) -> str:
        messages = [{"role": "user", "content": f"請分析以下會議對話並提取任務：\n\n{dialogue_text}"}]
        return self._llm.complete_chat(messages, EXTRACTION_SYSTEM_PROMPT)

    async def extract(self, dialogue_text: str) -> list[CandidateTask]:
        if not dialogue_text or not dialogue_text.strip():
            return []

        try:
            raw = await asyncio.wait_for(asyncio.to_thread(self._call, dialogue_text), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Task extraction timed out after %.1fs", self._timeout)
            return []
        except Exception:
            logger.exception("Task extraction call failed")
            return []

        try:
            candidates = parse_extraction_response(raw)
        except Exception as e:
            logger.warning("Task extraction returned an invalid payload (%s): %.200r", e, raw)
            return []

        logger.info("Task extraction produced %d candidate(s)", len(candidates))
        return candidates
