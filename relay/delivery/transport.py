"""
Outbound Transport

Performs a single delivery attempt to the downstream consumer and classifies
the outcome. Retrying is the forwarder's job, never the transport's.
"""

import httpx
from typing import Optional, Protocol

from relay.config import Settings
from relay.models.delivery import TransportOutcome
from relay.utils.metrics import MetricsRegistry, metrics as default_metrics
from relay.utils.observability import logger

# Longest response body excerpt kept in an error detail
MAX_ERROR_BODY_CHARS = 500


class OutboundTransport(Protocol):
    """
    Protocol for delivery channels.

    Implement this to relay to something other than an HTTP endpoint.
    """

    async def deliver(self, payload: str) -> TransportOutcome:
        """
        Make one delivery attempt.

        Args:
            payload: Opaque message body

        Returns:
            SUCCESS, RETRYABLE or NON_RETRYABLE outcome
        """
        ...


def classify_response(status_code: int, body: str = "") -> TransportOutcome:
    """
    Map an HTTP response status onto a delivery outcome.

    - 2xx: success
    - 429 Too Many Requests: retryable (rate limiting)
    - any other 4xx: non-retryable (the request itself is rejected)
    - 5xx and anything else: retryable
    """
    if 200 <= status_code < 300:
        return TransportOutcome.success(status_code)

    excerpt = body[:MAX_ERROR_BODY_CHARS] if body else ""

    if 400 <= status_code < 500 and status_code != httpx.codes.TOO_MANY_REQUESTS:
        return TransportOutcome.non_retryable(
            f"Client error (not retried): {status_code} - {excerpt}",
            status_code
        )

    return TransportOutcome.retryable(f"Backend error: {status_code} - {excerpt}", status_code)


class HttpTransport:
    """
    HTTP POST delivery to the configured backend URL.

    A single pooled AsyncClient is shared by every concurrent delivery; the
    per-attempt network timeout is the only timeout in the pipeline.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        metrics_sink: Optional[MetricsRegistry] = None,
    ):
        """
        Initialize the transport.

        Args:
            url: Downstream endpoint receiving POSTed payloads
            timeout: Per-attempt timeout in seconds
            client: Pre-built client (tests pass one with a MockTransport)
            metrics_sink: Metrics registry, defaults to the process registry
        """
        self.url = url
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=50, keepalive_expiry=90.0),
        )
        self._metrics = metrics_sink or default_metrics

        logger.info(f"Forwarding configured to: {url}")

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "HttpTransport":
        return cls(url=settings.backend_url, timeout=settings.backend_timeout_secs, **kwargs)

    async def deliver(self, payload: str) -> TransportOutcome:
        try:
            response = await self._client.post(
                self.url,
                content=payload.encode("utf-8"),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Backend request timed out: {e!r}")
            return TransportOutcome.retryable(f"Backend timeout: {e!r}")
        except httpx.HTTPError as e:
            logger.warning(f"Backend request failed: {e!r}")
            return TransportOutcome.retryable(f"Failed to reach backend: {e!r}")

        self._metrics.backend_response_status.inc(status_code=str(response.status_code))

        outcome = classify_response(response.status_code, response.text)
        if outcome.is_success:
            logger.debug(f"Backend responded with status {response.status_code}")
        else:
            logger.warning(f"Backend returned error: {outcome.detail}")
        return outcome

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
