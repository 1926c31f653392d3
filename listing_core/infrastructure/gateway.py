"""
Remote data gateway client.

Provides the gateway contract used by the query engine and an async
GraphQL-over-HTTP implementation with logging, request tracing and
operation metrics. Nothing here retries: a failed call is reported once.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..logging_config import get_logger, get_request_id
from ..metrics import track_gateway_operation
from .operations import OPERATIONS

logger = get_logger(__name__)


class GatewayError(Exception):
    """
    Raw failure reported by the remote data gateway.

    Attributes:
        message: Error message
        operation: Name of the operation that failed
        errors: Error batch from the response envelope
        status_code: HTTP status code if applicable
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.errors = errors or []
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def first_error(self) -> Dict[str, Any]:
        return self.errors[0] if self.errors else {}


@dataclass
class GatewayResult:
    """Result-or-errors envelope returned by every gateway operation."""

    data: Optional[Dict[str, Any]] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GatewayResult":
        return cls(data=payload.get("data"), errors=payload.get("errors") or [])


class IDataGateway(ABC):
    """
    Abstract interface for the remote data gateway.

    Implementations accept a named operation plus a variables record and
    return a ``GatewayResult``. Transport failures may raise.
    """

    @abstractmethod
    async def execute(
        self, operation: str, variables: Dict[str, Any]
    ) -> GatewayResult:
        """
        Run a named operation.

        Args:
            operation: Operation name (see ``operations.OPERATIONS``)
            variables: Variables record for the operation

        Returns:
            Envelope holding ``data`` or ``errors``
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None


class GraphQLGateway(IDataGateway):
    """
    Gateway speaking GraphQL over HTTP.

    Uses a persistent httpx.AsyncClient with connection pooling.

    Attributes:
        endpoint: GraphQL endpoint URL
        api_key: API key sent as ``x-api-key``
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        auth_token: Optional[str] = None,
    ) -> None:
        self.endpoint = (endpoint or settings.GRAPHQL_ENDPOINT).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.GRAPHQL_API_KEY
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.auth_token = auth_token
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Initialized GraphQLGateway",
            endpoint=self.endpoint,
            timeout=self.timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the persistent HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=100,
                    keepalive_expiry=30.0,
                ),
            )
            logger.debug("Created new HTTP client with connection pooling")
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed HTTP client")

    def _get_request_headers(self) -> Dict[str, str]:
        """Common request headers including request ID for tracing."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        if self.auth_token:
            headers["Authorization"] = self.auth_token

        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id

        return headers

    async def execute(
        self, operation: str, variables: Dict[str, Any]
    ) -> GatewayResult:
        """
        Post a named operation to the GraphQL endpoint.

        Raises:
            GatewayError: If the operation is unknown or the HTTP status fails
            httpx.TransportError: On connection failures and timeouts
        """
        definition = OPERATIONS.get(operation)
        if definition is None:
            raise GatewayError(f"Unknown gateway operation: {operation}", operation)

        start_time = time.perf_counter()
        status = "error"
        try:
            client = await self._get_client()
            response = await client.post(
                self.endpoint,
                json={
                    "query": definition.document,
                    "operationName": definition.name,
                    "variables": variables,
                },
                headers=self._get_request_headers(),
            )

            if response.status_code >= 400:
                errors = self._errors_from_body(response)
                logger.error(
                    "HTTP error from data gateway",
                    operation=operation,
                    status_code=response.status_code,
                    response_body=response.text[:500],
                )
                raise GatewayError(
                    errors[0].get("message", f"HTTP {response.status_code}")
                    if errors
                    else f"HTTP {response.status_code}",
                    operation=operation,
                    errors=errors,
                    status_code=response.status_code,
                )

            result = GatewayResult.from_payload(response.json())
            status = "success" if result.ok else "failed"
            if not result.ok:
                logger.warning(
                    "Gateway returned errors",
                    operation=operation,
                    error_count=len(result.errors),
                    first_error=result.errors[0].get("message"),
                )
            return result

        except httpx.TransportError as error:
            logger.error(
                "Gateway transport failure",
                operation=operation,
                endpoint=self.endpoint,
                error_type=type(error).__name__,
            )
            raise

        finally:
            duration = time.perf_counter() - start_time
            track_gateway_operation(operation, status, duration)
            logger.debug(
                "Gateway call finished",
                operation=operation,
                status=status,
                duration_ms=round(duration * 1000, 2),
            )

    @staticmethod
    def _errors_from_body(response: httpx.Response) -> List[Dict[str, Any]]:
        try:
            payload = response.json()
        except ValueError:
            return []
        if isinstance(payload, dict):
            return payload.get("errors") or []
        return []
