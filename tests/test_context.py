# FILE: tests/test_context.py
"""
Tests for ragcore/context.py
Source-labelled context and system prompt assembly.
"""

from ragcore.context import ContextAssembler, build_system_prompt
from ragcore.schemas import ChunkMatch, ChunkOut


def _match(chunk_id: int, doc: str, content: str, score: float = 0.9) -> ChunkMatch:
    chunk = ChunkOut(
        id=chunk_id,
        document_id=1,
        project_id=1,
        chunk_index=chunk_id,
        content=content,
        embedding=[1.0],
        document_name=doc,
    )
    return ChunkMatch(chunk=chunk, similarity=score, document_name=doc)


class TestContextAssembler:

    def test_formats_sources_in_order(self):
        result = ContextAssembler().assemble([
            _match(1, "guide.md", "Install with pip."),
            _match(2, "faq.md", "Restart the service."),
        ])

        assert result.text == (
            "[Source 1: guide.md]\nInstall with pip.\n\n"
            "[Source 2: faq.md]\nRestart the service."
        )
        assert result.sources_included == 2
        assert result.truncated is False

    def test_budget_truncates(self):
        matches = [_match(i, f"doc{i}", "word " * 40) for i in range(5)]

        result = ContextAssembler(max_tokens=120).assemble(matches)

        assert 0 < result.sources_included < 5
        assert result.truncated is True
        assert result.total_tokens <= 120

    def test_token_estimate_counts_words(self):
        # "[Source 1: d]" is three words, the content seven: int(10 * 1.3)
        result = ContextAssembler().assemble([_match(1, "d", "one two three four five six seven")])
        assert result.total_tokens == 13

    def test_budget_counts_words_not_characters(self):
        long_word = "x" * 400
        result = ContextAssembler(max_tokens=10).assemble([_match(1, "d", long_word)])
        assert result.sources_included == 1
        assert result.truncated is False

    def test_empty(self):
        result = ContextAssembler().assemble([])
        assert result.text == ""
        assert result.sources_included == 0

    def test_system_prompt(self):
        prompt = build_system_prompt([_match(1, "a.txt", "Alpha.")])
        assert prompt == (
            "You are a helpful assistant. Use the following context to answer the user's question.\n\n"
            "Context:\n[Source 1: a.txt]\nAlpha."
        )
