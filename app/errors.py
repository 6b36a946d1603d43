"""Error taxonomy for the search-string generation engine.

Every pipeline error carries a stable ``kind`` that is persisted as the
prefix of ``error_message`` (``"FetchError: ..."``) and decides whether the
UI offers a retry.
"""


class SearchStringError(RuntimeError):
    """Base class for errors that end (or redirect) a processing run."""

    kind = "SearchStringError"
    retryable = True
    user_message = "The search string could not be generated."

    def __init__(self, detail: str = "", *, cause: BaseException | None = None):
        self.detail = detail
        self.cause = cause
        super().__init__(detail or self.user_message)

    def to_error_message(self) -> str:
        """Render as ``"<Kind>: <user message> (<detail>)"`` for persistence."""
        message = f"{self.kind}: {self.user_message}"
        if self.detail:
            message += f" ({self.detail[:300]})"
        return message


class InsufficientContent(SearchStringError):
    kind = "InsufficientContent"
    user_message = (
        "Not enough content to build a search string. "
        "Add more text or choose a page with more content, then try again."
    )


class FetchError(SearchStringError):
    kind = "FetchError"
    user_message = "The website could not be loaded."


class ExtractionError(SearchStringError):
    kind = "ExtractionError"
    user_message = "The website content could not be read."


class SourceUnavailable(SearchStringError):
    kind = "SourceUnavailable"
    retryable = False
    user_message = (
        "The uploaded document is no longer available. "
        "Please create a new search request and upload the document again."
    )


class GenerationTransportError(SearchStringError):
    """Model call failed or is not configured — recovered by the fallback, never persisted."""

    kind = "GenerationTransportError"
    user_message = "The language model could not be reached."


# ═══════════════ LIFECYCLE ERRORS (raised to the API layer) ═══════════════


class RequestNotFound(LookupError):
    """No search request exists with the given id."""


class InvalidTransition(RuntimeError):
    """The requested operation is not allowed from the record's current status."""


UNEXPECTED_ERROR_KIND = "UnexpectedError"

NON_RETRYABLE_KINDS = frozenset({SourceUnavailable.kind})
