from __future__ import annotations


class MoltbotClientError(Exception):
    """Base client error."""


class EngineError(MoltbotClientError):
    """Container engine CLI could not be invoked."""


class ManifestFetchError(MoltbotClientError):
    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
