from .client import (
    ApiError,
    ApiNotFoundError,
    ApiRateLimitedError,
    ApiRequestError,
    ApiUnauthorizedError,
    RestClient,
)

__all__ = [
    "ApiError",
    "ApiNotFoundError",
    "ApiRateLimitedError",
    "ApiRequestError",
    "ApiUnauthorizedError",
    "RestClient",
]
