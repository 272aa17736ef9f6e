"""
HTTP client that authenticates with PoP tokens.
"""

from typing import Optional

import httpx

from shared.logging import get_logger
from .issuer import PopTokenIssuer


class PopClient:
    """Calls a PoP-protected endpoint, signing a fresh token per request."""

    def __init__(
        self,
        server_url: str,
        issuer: PopTokenIssuer,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.server_url = server_url
        self.issuer = issuer
        self.logger = get_logger("pop_client.http")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "PopClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def call(self, token: Optional[str] = None) -> httpx.Response:
        """GET the endpoint with `token`, or with a newly issued one."""
        if token is None:
            token = self.issuer.issue()

        response = await self._client.get(
            self.server_url,
            headers={"Authorization": f"Bearer {token}"},
        )
        self.logger.info(
            "PoP request completed",
            url=self.server_url,
            status_code=response.status_code,
        )
        return response
