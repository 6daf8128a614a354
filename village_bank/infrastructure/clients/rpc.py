"""HTTP client for the hosted backend's remote procedures"""

import httpx
from typing import Any, Dict
from village_bank.config import settings
from village_bank.domain.exceptions import RemoteProcedureError
from village_bank.infrastructure.observability.metrics import rpc_latency_histogram, rpc_failure_counter


class RpcClient:
    """Client for named remote procedures (grace extension, waitlist settlement)"""

    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.rpc_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.rpc_api_key
        self.timeout = timeout or settings.http_timeout_seconds

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def call(self, name: str, params: Dict[str, Any]) -> Any:
        """
        Invoke a remote procedure by name.

        The result is returned as decoded JSON (None for an empty body) and is
        not interpreted further. No retries: a failed call is surfaced as-is.

        Raises:
            RemoteProcedureError: On timeout, HTTP errors, or transport failures
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with rpc_latency_histogram.labels(procedure=name).time():
                    response = await client.post(
                        f"{self.base_url}/rest/v1/rpc/{name}",
                        json=params,
                        headers=self._headers(),
                    )
                    response.raise_for_status()
                return response.json() if response.content else None

            except httpx.TimeoutException as e:
                rpc_failure_counter.labels(procedure=name).inc()
                raise RemoteProcedureError(f"{name} timed out after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                rpc_failure_counter.labels(procedure=name).inc()
                raise RemoteProcedureError(f"{name} failed: {e.response.status_code}") from e
            except httpx.RequestError as e:
                rpc_failure_counter.labels(procedure=name).inc()
                raise RemoteProcedureError(f"{name} unreachable: {e}") from e
            except ValueError as e:
                raise RemoteProcedureError(f"Invalid response from {name}: {e}") from e
