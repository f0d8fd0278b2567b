"""
JSON-RPC transport to a Bitcoin Core node.

One call is exactly one HTTP round trip: no retries, no caching. Retry
policy, if any, belongs to whoever drives the lifecycle.
"""

from __future__ import annotations

import os
from decimal import Decimal
from itertools import count
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from psbtcoord.config import RpcConfig
from psbtcoord.constants import REQUEST_ID_PREFIX
from psbtcoord.errors import ConfigurationError, TransportError
from psbtcoord.models import RpcRequest, RpcResponse

# Environment variable to enable sensitive logging (PSBTs, raw transactions)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class RpcTransport:
    """
    Authenticated request/response exchange with a Bitcoin Core node.

    Wallet-scoped calls are routed to ``/wallet/<name>``; all other calls go
    to the node's base URL.
    """

    def __init__(
        self,
        config: RpcConfig,
        client: httpx.AsyncClient | None = None,
        wallet: str | None = None,
    ):
        self.config = config
        self.wallet = wallet if wallet is not None else config.wallet
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=config.timeout, auth=(config.user, config.password)
        )
        self._ids = count(1)

    def _build_request(self, method: str, params: list[Any] | None) -> RpcRequest:
        return RpcRequest(
            id=f"{REQUEST_ID_PREFIX}-{next(self._ids)}",
            method=method,
            params=params or [],
        )

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        *,
        wallet_scoped: bool = False,
        wallet: str | None = None,
    ) -> RpcResponse:
        """
        Make an RPC call to Bitcoin Core.

        Args:
            method: RPC method name
            params: Positional method parameters
            wallet_scoped: Route the call to a wallet context
            wallet: Wallet to use instead of the transport's default

        Returns:
            The response envelope; ``error`` is not inspected here

        Raises:
            ConfigurationError: If a wallet-scoped call has no wallet to use
            TransportError: On connection, timeout or unparseable responses
        """
        target_wallet: str | None = None
        if wallet_scoped:
            target_wallet = wallet or self.wallet
            if not target_wallet:
                raise ConfigurationError(f"No wallet configured for wallet-scoped call {method}")

        request = self._build_request(method, params)
        url = self.config.endpoint(target_wallet)
        scope = f"wallet '{target_wallet}'" if target_wallet else "node"
        logger.debug(f"RPC {method} -> {scope} (id={request.id})")
        if SENSITIVE_LOGGING:
            logger.debug(f"RPC {method} params: {request.params}")

        try:
            response = await self.client.post(
                url,
                content=request.model_dump_json(),
                headers={"Content-Type": "text/plain"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise TransportError(method, f"timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise TransportError(method, str(e)) from e

        # Bitcoin Core reports RPC errors as HTTP 500 with a JSON body, so the
        # status only matters when the body is not an envelope.
        try:
            data = response.json(parse_float=Decimal)
        except ValueError as e:
            logger.error(f"RPC {method} returned a non-JSON body (HTTP {response.status_code})")
            raise TransportError(
                method,
                f"HTTP {response.status_code}: unparseable response body",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                method, "response is not a JSON object", status_code=response.status_code
            )

        try:
            return RpcResponse.model_validate(data)
        except ValidationError as e:
            logger.error(f"RPC {method} returned a malformed envelope: {e}")
            raise TransportError(
                method, "malformed response envelope", status_code=response.status_code
            ) from e

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> RpcTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
