"""
Typed failures raised by components and translated to JSON at the HTTP boundary.
"""
from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


# ── input / configuration ──────────────────

class ValidationError(AppError):
    status_code = 400


class NotFound(AppError):
    status_code = 404


class Unavailable(AppError):
    """A provider's external dependency is not installed."""
    status_code = 400

    def __init__(self, message: str, dependency: str):
        super().__init__(message)
        self.dependency = dependency

    def to_dict(self):
        return {"error": self.message, "dependency": self.dependency}


class NotConfigured(AppError):
    status_code = 500


# ── outbound HTTP ──────────────────

class UpstreamError(AppError):
    status_code = 502

    def __init__(self, status: int, url: str, message: str | None = None):
        super().__init__(message or f"Upstream returned {status}")
        self.status = status
        self.url = url

    def to_dict(self):
        return {"error": self.message, "status": self.status, "url": self.url}


class MalformedResponse(UpstreamError):
    """A 2xx whose body is not the JSON the caller asked for."""

    def __init__(self, status: int, url: str):
        super().__init__(status, url, "Upstream returned invalid JSON")

    def to_dict(self):
        return {"error": self.message, "url": self.url}


class FetchError(AppError):
    """Transport-level failure; `code` is stable across releases."""
    status_code = 502
    code = "UNKNOWN"

    def to_dict(self):
        return {"error": "Upstream request failed", "code": self.code, "message": self.message}


class FetchTimeout(FetchError):
    code = "ETIMEDOUT"


class DnsError(FetchError):
    code = "ENOTFOUND"


class NetworkError(FetchError):
    code = "UNKNOWN"


# ── external resolvers ──────────────────

class ResolverError(AppError):
    status_code = 500

    def __init__(self, message: str, binary: str):
        super().__init__(message)
        self.binary = binary

    def to_dict(self):
        return {"error": self.message, "binary": self.binary}


class BinaryMissing(ResolverError):
    pass


class SubprocessTimeout(ResolverError):
    pass


class SubprocessNonZero(ResolverError):
    def __init__(self, message: str, binary: str, returncode: int, stderr: str = ""):
        super().__init__(message, binary)
        self.returncode = returncode
        self.stderr = stderr


class NoPlayableUrls(AppError):
    status_code = 500
