"""codeindex: semantic indexing of source code into a vector store."""

__version__ = "0.1.0"
