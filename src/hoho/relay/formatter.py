"""Render backend answers into a single bounded chat message."""

from __future__ import annotations

from dataclasses import dataclass

from hoho.protocol.types import MAX_MESSAGE_LENGTH
from hoho.relay.ai_bridge import AiAnswer, AiResult, ErrorKind

ELLIPSIS = "..."

# Entries rendered per answer
MAX_RESULTS = 3

# Description excerpt length per entry, ellipsis included
DESCRIPTION_CHARS = 200

# Backend detail shown to users on application errors
ERROR_EXCERPT_CHARS = 100

TIMEOUT_MESSAGE = "⏱️ Sorry, the request timed out. Please try again in a moment."
BACKEND_ERROR_MESSAGE = "⚠️ Sorry, the answer service is unavailable right now. Please try again later."
APPLICATION_ERROR_MESSAGE = "⚠️ Sorry, I couldn't answer that question."
GENERIC_FAILURE_MESSAGE = "⚠️ Sorry, something went wrong while preparing your answer."


@dataclass(frozen=True)
class FormattedMessage:
    """Final message text; ``truncated`` is set if the length cap applied."""

    text: str
    truncated: bool = False


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def _render_entry(position: int, result: AiResult) -> str:
    lines = [f"**{position}. {result.title.strip()}**"]
    if isinstance(result.description, str) and result.description.strip():
        lines.append(_clip(" ".join(result.description.split()), DESCRIPTION_CHARS))
    if result.url:
        lines.append(f"<{result.url}>")
    return "\n".join(lines)


def top_results(results: tuple[AiResult, ...], limit: int = MAX_RESULTS) -> list[AiResult]:
    """Highest-scoring *limit* results; ties keep backend order."""
    return sorted(results, key=lambda r: r.score, reverse=True)[:limit]


class ResultFormatter:
    """Maps an :class:`AiAnswer` to a :class:`FormattedMessage`."""

    def __init__(self, max_length: int = MAX_MESSAGE_LENGTH) -> None:
        self._max_length = max_length

    def format(self, answer: AiAnswer, query: str) -> FormattedMessage:
        return self.finalize(self._render(answer, query))

    def finalize(self, text: str) -> FormattedMessage:
        """Apply the global length cap exactly once, at the end."""
        if len(text) <= self._max_length:
            return FormattedMessage(text=text)
        return FormattedMessage(
            text=text[: self._max_length - len(ELLIPSIS)] + ELLIPSIS,
            truncated=True,
        )

    def _render(self, answer: AiAnswer, query: str) -> str:
        if answer.error_kind is ErrorKind.TIMEOUT:
            return TIMEOUT_MESSAGE
        if answer.error_kind is ErrorKind.BACKEND_ERROR:
            return BACKEND_ERROR_MESSAGE
        if answer.error_kind is ErrorKind.APPLICATION_ERROR:
            if answer.error_detail:
                return (
                    f"{APPLICATION_ERROR_MESSAGE} "
                    f"({_clip(answer.error_detail, ERROR_EXCERPT_CHARS)})"
                )
            return APPLICATION_ERROR_MESSAGE

        if not answer.results:
            if answer.reply:
                return answer.reply.strip()
            return f'🔍 No relevant information found for "{query}".'

        entries = [
            _render_entry(position, result)
            for position, result in enumerate(top_results(answer.results), start=1)
        ]
        header = f'🔎 Top results for "{query}":'
        return "\n\n".join([header, *entries])
