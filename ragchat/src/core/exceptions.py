"""
Custom exceptions for the RagChat pipeline.

Only ``GenerationError`` is meant to escape ``ChatOrchestrator.process_chat``;
the others are raised and handled inside the component that owns the
failing dependency.
"""


class RagChatError(Exception):
    """Base exception for all RagChat errors."""
    pass


class EmbeddingProviderError(RagChatError):
    """
    A remote embedding backend could not produce a vector.

    Raised when:
    - The request times out or the connection fails
    - The provider answers with a non-2xx status
    - The response body is malformed or has the wrong dimensionality
    """

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class GenerationError(RagChatError):
    """
    The language model call failed or timed out.

    This is distinct from a model answering "I don't know", which is a
    successful response.
    """
    pass


class PersistenceError(RagChatError):
    """Reading or writing conversation history failed."""
    pass


class VectorDimensionError(RagChatError, ValueError):
    """Two vectors with different lengths were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector dimensions must match: {left} != {right}")
        self.left = left
        self.right = right
