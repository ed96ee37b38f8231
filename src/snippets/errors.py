from __future__ import annotations


class SnippetError(RuntimeError):
    """Base class for failures of snippet operations.

    `code` is the stable machine-readable identifier the HTTP layer returns.
    """

    code = "snippet_error"


class Unauthenticated(SnippetError):
    code = "not_authenticated"

    def __init__(self, message: str = "login required to manage snippets") -> None:
        super().__init__(message)


class NotFound(SnippetError):
    code = "not_found"

    def __init__(self, snippet_id: str, message: str | None = None) -> None:
        super().__init__(message or f"snippet {snippet_id!r} not found")
        self.snippet_id = snippet_id


class TransportFailure(SnippetError):
    code = "store_unavailable"
