"""
Remote sitter-scoring client.

The remote scorer is an HTTP function that takes one candidate's features
and answers with a score, reasons and a confidence bucket. Any transport,
status or payload problem surfaces as DependencyUnavailable so the caller
can fall back to local scoring.
"""

import logging
from typing import Optional, Protocol

import httpx

from booking_engine.config import settings
from booking_engine.errors import DependencyUnavailable
from booking_engine.schemas.sitter_schema import RemoteScore, ScoringFeatures

logger = logging.getLogger(__name__)


class RemoteScorer(Protocol):
    async def score(self, features: ScoringFeatures) -> RemoteScore: ...


class HttpRemoteScorer:
    """RemoteScorer that POSTs JSON features with httpx."""

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url or settings.scoring.remote_url
        if not self.url:
            raise ValueError("SCORER_URL is not configured")
        self._client = client or httpx.AsyncClient(
            timeout=timeout_sec or settings.scoring.timeout_sec
        )

    async def score(self, features: ScoringFeatures) -> RemoteScore:
        """
        Raises:
            DependencyUnavailable: On network errors, non-2xx responses or
                a response body that is not a valid score.
        """
        try:
            response = await self._client.post(self.url, json=features.model_dump())
            response.raise_for_status()
            return RemoteScore.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.debug("Remote scoring failed for %s: %s", features.sitter_id, exc)
            raise DependencyUnavailable("remote scorer", exc) from exc
        except ValueError as exc:
            logger.debug("Invalid scoring payload for %s: %s", features.sitter_id, exc)
            raise DependencyUnavailable("remote scorer", exc) from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpRemoteScorer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
