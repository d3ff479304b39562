"""
Infrastructure layer: Base HTTP client with retry logic.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from reforest.config import Settings
from reforest.domain.errors import CollaboratorError
from reforest.infrastructure.api_constants import APIConstants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff policy for an external service.

    ``max_attempts=1`` disables retrying.
    """
    max_attempts: int = 1
    multiplier: float = 1.0
    min_wait: float = 1.0
    max_wait: float = 4.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_retry_attempts,
            multiplier=settings.retry_backoff_multiplier,
            min_wait=settings.retry_min_wait,
            max_wait=settings.retry_max_wait,
        )


NO_RETRY = RetryPolicy()


class ExternalAPIClient:
    """
    Client for interacting with an external JSON API.
    Implements retry logic with exponential backoff.

    Server errors (5xx) and transport errors are retried according to the
    retry policy; client errors (4xx) fail immediately.
    """

    service_name = "external"

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = APIConstants.DEFAULT_TIMEOUT,
        retry_policy: RetryPolicy = NO_RETRY,
    ):
        """Initialize the API client with configuration."""
        self.base_url = base_url
        self.retry_policy = retry_policy
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"accept": APIConstants.CONTENT_TYPE_JSON, **(headers or {})},
            timeout=timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def _retrying(self) -> AsyncRetrying:
        policy = self.retry_policy
        return AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.multiplier,
                min=policy.min_wait,
                max=policy.max_wait,
            ),
            retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
            reraise=True,
        )

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            **kwargs: Additional arguments for the request

        Returns:
            Response data as dictionary

        Raises:
            CollaboratorError: If the request fails after retries
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"{self.service_name}: retrying {method} {endpoint} "
                            f"(attempt {attempt.retry_state.attempt_number})"
                        )
                    return await self._send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise CollaboratorError(
                f"{self.service_name} request failed: {e.response.status_code} - {e.response.text}",
                service=self.service_name,
            )
        except httpx.TransportError as e:
            raise CollaboratorError(
                f"{self.service_name} request error: {str(e)}",
                service=self.service_name,
            )

    async def _send(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        response = await self.client.request(method, endpoint, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Retry on server errors (5xx)
            if e.response.status_code >= 500:
                raise
            # Don't retry on client errors (4xx)
            raise CollaboratorError(
                f"{self.service_name} request failed: {e.response.status_code} - {e.response.text}",
                service=self.service_name,
            )
        try:
            return response.json()
        except ValueError as e:
            raise CollaboratorError(
                f"{self.service_name} returned invalid JSON: {str(e)}",
                service=self.service_name,
            )
