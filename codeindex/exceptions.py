"""Exceptions raised by codeindex."""


class CodeIndexError(Exception):
    """Base exception for codeindex."""

    pass


class DiscoveryError(CodeIndexError):
    """A directory under the indexing root could not be read."""

    pass


class ExtractionError(CodeIndexError):
    """A single file could not be read or parsed."""

    pass


class UnsupportedLanguageError(ExtractionError):
    """No grammar is registered for the file's extension."""

    pass


class AmbiguousPathError(CodeIndexError):
    """A partial path matched more than one file."""

    pass


class EmbeddingError(CodeIndexError):
    """The embedding service returned an unusable response."""

    pass


class EmbeddingConfigError(EmbeddingError):
    """Embedding was required but no credentials were configured."""

    pass


class VectorStoreError(CodeIndexError):
    """A vector store call failed."""

    pass


class IndexFileError(CodeIndexError):
    """The JSON entity index could not be read or written."""

    pass
