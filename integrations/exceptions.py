from __future__ import annotations

class ApiRequestError(Exception):
    """Generic API request error (4xx/5xx not otherwise classified)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

class ApiNetworkError(ApiRequestError):
    """Timeout or connection failure before a response was received."""

class ApiTransientError(ApiRequestError):
    """Retryable upstream failure (429 or 5xx)."""

class ApiRateLimitError(ApiTransientError):
    """Rate limiting encountered (429)."""

class ApiPermanentError(ApiRequestError):
    """Non-retryable client error (4xx other than 429)."""

class ApiAuthError(ApiPermanentError):
    """Authentication or authorization failure (401/403)."""

class ShopifyGraphQLError(ApiRequestError):
    """GraphQL payload returned an ``errors`` array."""

    def __init__(self, errors: list):
        self.errors = errors or []
        messages = [e.get('message', str(e)) if isinstance(e, dict) else str(e) for e in self.errors]
        super().__init__('GraphQL errors: ' + ', '.join(messages))
