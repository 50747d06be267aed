# FILE: ragcore/validation.py
"""
Input validation helpers.

All helpers raise InvalidInputError with a message naming the offending field.
"""

from typing import Union

from ragcore.config import MAX_DOCUMENT_CHARS, MAX_NAME_CHARS, MAX_QUERY_CHARS, MAX_TOP_K
from ragcore.errors import InvalidInputError

Number = Union[int, float]

_FORBIDDEN_NAME_CHARS = ("\0", "\r", "\n")


def validate_not_empty(value: str, field_name: str) -> None:
    if value is None or not value.strip():
        raise InvalidInputError(f"{field_name} cannot be empty")


def validate_length(value: str, max_length: int, field_name: str) -> None:
    if len(value) > max_length:
        raise InvalidInputError(
            f"{field_name} exceeds maximum length of {max_length} characters (got {len(value)})"
        )


def validate_range(value: Number, minimum: Number, maximum: Number, field_name: str) -> None:
    if value < minimum or value > maximum:
        raise InvalidInputError(f"{field_name} must be between {minimum} and {maximum} (got {value})")


def validate_name(name: str, field_name: str = "name") -> None:
    """Display names: 1..MAX_NAME_CHARS characters, single line, no NUL."""
    validate_not_empty(name, field_name)
    validate_length(name, MAX_NAME_CHARS, field_name)
    for ch in _FORBIDDEN_NAME_CHARS:
        if ch in name:
            raise InvalidInputError(f"{field_name} contains invalid characters")


def validate_document_content(text: str) -> None:
    validate_not_empty(text, "Document content")
    validate_length(text, MAX_DOCUMENT_CHARS, "Document content")


def validate_query(query: str) -> None:
    validate_not_empty(query, "Query")
    validate_length(query, MAX_QUERY_CHARS, "Query")


def validate_top_k(top_k: int) -> None:
    if isinstance(top_k, bool) or not isinstance(top_k, int):
        raise InvalidInputError(f"top_k must be an integer (got {top_k!r})")
    validate_range(top_k, 1, MAX_TOP_K, "top_k")


def validate_provider_id(provider_id: str) -> None:
    validate_not_empty(provider_id, "Embedding provider id")
