"""
Atlantic H2H client using httpx sync client.
Creates QRIS charges and reads their status. Authenticated with a static
pre-shared key sent as the `apikey` query parameter.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import pybreaker

from rpay.core.config import settings
from rpay.services.circuit_breaker import make_circuit_breaker
from rpay.utils.metrics import (
    upstream_requests_total,
    upstream_request_duration_seconds,
)


logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Processor unreachable, answered non-2xx, or rejected the request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class UpstreamCharge:
    """The part of a processor deposit record the gateway cares about."""
    status: str | None
    qr_string: str | None = None
    qr_image: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class AtlanticClient:
    """
    Sync client for the Atlantic H2H deposit API.
    Transport errors and 5xx responses are retried up to `max_retries` times;
    every call goes through a circuit breaker owned by the client.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 15.0,
        max_retries: int = 1,
        deposit_type: str = "ewallet",
        deposit_method: str = "qrisfast",
        transport: httpx.BaseTransport | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._deposit_type = deposit_type
        self._deposit_method = deposit_method
        self._transport = transport
        self._client: httpx.Client | None = None
        self.breaker = breaker or make_circuit_breaker("atlantic")

    @classmethod
    def from_settings(cls) -> "AtlanticClient":
        return cls(
            api_key=settings.atlantic_api_key,
            base_url=settings.atlantic_base_url,
            timeout=settings.atlantic_timeout,
            max_retries=settings.atlantic_max_retries,
            deposit_type=settings.atlantic_deposit_type,
            deposit_method=settings.atlantic_deposit_method,
        )

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, transport=self._transport)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_charge(self, reff_id: str, nominal: int) -> UpstreamCharge:
        """Create a QRIS charge. Returns the QR payload and image."""
        data = self._call(
            "deposit_create",
            "/deposit/create",
            {
                "reff_id": reff_id,
                "nominal": nominal,
                "type": self._deposit_type,
                "metode": self._deposit_method,
            },
        )
        if not data.get("qr_string") and not data.get("qr_image"):
            raise UpstreamError("Processor returned no QR payload")
        return self._to_charge(data)

    def get_status(self, reff_id: str) -> UpstreamCharge:
        data = self._call("deposit_status", "/deposit/status", {"reff_id": reff_id})
        if not data.get("status"):
            raise UpstreamError("Processor returned no status")
        return self._to_charge(data)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _to_charge(data: dict[str, Any]) -> UpstreamCharge:
        status = data.get("status")
        return UpstreamCharge(
            status=str(status).lower() if status else None,
            qr_string=data.get("qr_string") or None,
            qr_image=data.get("qr_image") or None,
            raw=data,
        )

    def _record_request(self, method: str, status: str, duration: float) -> None:
        upstream_requests_total.labels(method=method, status=status).inc()
        upstream_request_duration_seconds.labels(method=method).observe(duration)

    def _call(self, method: str, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """Run a request through the breaker and unwrap `{"status": true, "data": {...}}`."""
        start = time.time()
        try:
            resp = self.breaker.call(self._request_with_retry, path, params)
        except pybreaker.CircuitBreakerError as e:
            self._record_request(method, "circuit_open", time.time() - start)
            logger.warning("upstream_circuit_open", extra={"error": str(e), "path": path})
            raise UpstreamError("Payment processor temporarily unavailable") from e
        except UpstreamError:
            self._record_request(method, "error", time.time() - start)
            raise

        # 4xx and unparseable bodies answer for this request only; they stay outside the breaker
        if resp.status_code >= 400:
            self._record_request(method, "error", time.time() - start)
            logger.warning("upstream_client_error", extra={"path": path, "status_code": resp.status_code})
            raise UpstreamError(f"HTTP {resp.status_code}", status_code=resp.status_code)
        try:
            body = resp.json()
        except ValueError as e:
            self._record_request(method, "error", time.time() - start)
            raise UpstreamError("Processor returned invalid JSON", status_code=resp.status_code) from e

        if not isinstance(body, dict) or body.get("status") is False:
            message = body.get("message") if isinstance(body, dict) else None
            self._record_request(method, "rejected", time.time() - start)
            logger.warning("upstream_rejected", extra={"path": path, "error": message})
            raise UpstreamError(message or "Processor rejected the request")
        data = body.get("data")
        if not isinstance(data, dict):
            self._record_request(method, "rejected", time.time() - start)
            raise UpstreamError("Processor response has no data")

        self._record_request(method, "success", time.time() - start)
        return data

    def _request_with_retry(self, path: str, params: dict[str, Any]) -> httpx.Response:
        """GET with retries on transport errors and 5xx. Any other response is returned as is."""
        url = f"{self._base_url}{path}"
        query = {"apikey": self._api_key, **params}
        last_error = UpstreamError("Processor unreachable")
        for attempt in range(self._max_retries + 1):
            try:
                resp = self.client.get(url, params=query)
            except httpx.TransportError as e:
                last_error = UpstreamError(f"{type(e).__name__}: {e}")
                logger.warning(
                    "upstream_transport_error",
                    extra={"path": path, "attempt": attempt + 1, "error": type(e).__name__},
                )
                continue
            if resp.status_code >= 500:
                last_error = UpstreamError(f"HTTP {resp.status_code}", status_code=resp.status_code)
                logger.warning(
                    "upstream_server_error",
                    extra={"path": path, "attempt": attempt + 1, "status_code": resp.status_code},
                )
                continue
            return resp
        raise last_error
