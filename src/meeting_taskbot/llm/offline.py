# src/meeting_taskbot/llm/offline.py

from __future__ import annotations

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Every extraction request yields an empty task list, so meeting summaries
    still work end to end (they just report that nothing was detected).
    """

    def complete_chat(self, messages: list[ChatMessage], system_prompt: str) -> str:
        return '{"tasks": []}'
