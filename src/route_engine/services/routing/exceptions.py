from __future__ import annotations


class RouteEngineError(Exception):
    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ProviderError(RouteEngineError):
    """Mapping provider failed, was unreachable, or answered with a non-OK status."""

    def __init__(self, message: str, status_code: int = 503, provider_status: str | None = None) -> None:
        super().__init__(message, status_code=status_code)
        self.provider_status = provider_status


class NoActiveRouteError(RouteEngineError):
    def __init__(self, message: str = "No active route is loaded.") -> None:
        super().__init__(message, status_code=404)


class UnconfirmedDiscardError(RouteEngineError):
    def __init__(self, message: str = "The active route is unfinished; confirmation is required.") -> None:
        super().__init__(message, status_code=409)
