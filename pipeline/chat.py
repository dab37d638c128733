"""
pipeline/chat.py — Follow-up questions on top of a general summary.

A conversation starts from GeneralSummary.chat_history(): the exact prompt
that produced the summary plus the summary itself as the assistant turn.
Each reply() appends the user's question and the model's answer.

When the history does not cover the question, the model lists follow-up
searches after a "Suggested searches:" line. Those are split off the answer
and returned separately so the caller can offer them as new queries.

USAGE:
  chat = ChatService(completer)
  reply = await chat.reply(report.general.chat_history(), "What about sea levels?")
  print(reply.answer)
  print(reply.suggested_queries)
  history = reply.history          # pass back in for the next turn
"""

import logging
from dataclasses import dataclass, field

from llm.completion import CompletionService
from pipeline.guardrails import validate_history, validate_query
from pipeline.parsers import parse_suggested_searches
from prompts.chat import CHAT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    answer: str
    history: list[dict]
    suggested_queries: list[str] = field(default_factory=list)


class ChatService:
    def __init__(self, completer: CompletionService) -> None:
        self._completer = completer

    async def reply(self, history: list[dict], query: str) -> ChatReply:
        """
        Answer `query` in the context of `history`.

        Raises ValueError on a malformed history or empty query, and
        CompletionExhausted when no provider produced an answer.
        """
        history = validate_history(history)
        query = validate_query(query)

        messages = [
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            *(m for m in history if m["role"] != "system"),
            {"role": "user", "content": query},
        ]
        text = await self._completer.complete(messages)
        answer, suggestions = parse_suggested_searches(text)
        if suggestions:
            logger.info("Chat reply suggested %d follow-up searches", len(suggestions))

        return ChatReply(
            answer=answer,
            history=[
                *history,
                {"role": "user", "content": query},
                {"role": "assistant", "content": answer},
            ],
            suggested_queries=suggestions,
        )
