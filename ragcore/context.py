# FILE: ragcore/context.py
"""
Context assembler.

Turns retrieval matches into a source-labelled context block and a chat
system prompt, within a token budget.
"""

from dataclasses import dataclass
from typing import List, Sequence

from ragcore.config import CONTEXT_MAX_TOKENS
from ragcore.schemas import ChunkMatch

SYSTEM_PROMPT_TEMPLATE = (
    "You are a helpful assistant. Use the following context to answer the user's question.\n\n"
    "Context:\n{context}"
)

SOURCE_SEPARATOR = "\n\n"


@dataclass
class AssembledContext:
    """Assembled context for the LLM."""
    text: str
    total_tokens: int
    sources_included: int
    truncated: bool

    @property
    def system_prompt(self) -> str:
        return SYSTEM_PROMPT_TEMPLATE.format(context=self.text)


class ContextAssembler:
    """Assemble retrieval matches into prompt context."""

    def __init__(self, max_tokens: int = CONTEXT_MAX_TOKENS):
        self.max_tokens = max_tokens

    def assemble(self, matches: Sequence[ChunkMatch]) -> AssembledContext:
        """
        Format matches in rank order until the token budget runs out.

        Sources are numbered from 1 in the order given; a match that would
        overflow the budget stops assembly and marks the result truncated.
        """
        entries: List[str] = []
        total_tokens = 0
        truncated = False

        for i, match in enumerate(matches, 1):
            entry = self._format_source(i, match)
            entry_tokens = self._estimate_tokens(entry)

            if total_tokens + entry_tokens > self.max_tokens:
                truncated = True
                break

            entries.append(entry)
            total_tokens += entry_tokens

        return AssembledContext(
            text=SOURCE_SEPARATOR.join(entries),
            total_tokens=total_tokens,
            sources_included=len(entries),
            truncated=truncated,
        )

    def _format_source(self, index: int, match: ChunkMatch) -> str:
        return f"[Source {index}: {match.document_name}]\n{match.chunk.content}"

    def _estimate_tokens(self, text: str) -> int:
        """Rough token estimate (~1.3 tokens per word)."""
        return int(len(text.split()) * 1.3)


def build_system_prompt(matches: Sequence[ChunkMatch], max_tokens: int = CONTEXT_MAX_TOKENS) -> str:
    return ContextAssembler(max_tokens=max_tokens).assemble(matches).system_prompt
