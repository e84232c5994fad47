from typing import Any, List, Optional


class AnalyzerError(Exception):
    """Base class for every error raised by the analyzer core."""


class AuthRequiredError(AnalyzerError):
    """No usable token: the interactive authorization-code flow must run."""


class AuthRefreshError(AnalyzerError):
    """The accounts service rejected the refresh token."""


class RemoteFetchError(AnalyzerError):
    """A paged or batched Web API call failed.

    ``partial`` holds whatever was collected before the failure. It exists
    for diagnostics only; nothing resumes from it.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str = "request",
        partial: Optional[List[Any]] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.stage = stage
        self.partial = list(partial or [])
        self.status_code = status_code
        self.retryable = retryable

    def with_context(self, *, stage: str, partial: List[Any]) -> "RemoteFetchError":
        return RemoteFetchError(
            str(self),
            stage=stage,
            partial=partial,
            status_code=self.status_code,
            retryable=self.retryable,
        )


class SyncFailedError(AnalyzerError):
    """A bulk sync aborted. No snapshot was written."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        playlist_id: Optional[str] = None,
        playlist_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.playlist_id = playlist_id
        self.playlist_name = playlist_name


class CacheIOError(AnalyzerError):
    """Reading or writing the snapshot file or the .env store failed."""

    def __init__(self, message: str, *, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
