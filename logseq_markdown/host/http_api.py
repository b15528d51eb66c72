"""
Logseq HTTP API host.

Talks to the HTTP API server built into the Logseq desktop app. Every call
is a POST to ``<api_url>/api`` naming a plugin SDK method and its arguments.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import get_config
from ..exceptions import HostError
from .base import BaseHost, PageId


class LogseqAPIHost(BaseHost):
    """
    Host adapter backed by the Logseq HTTP API server.
    """

    def __init__(self, api_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the API host.

        Args:
            api_url: Base URL of the API server (defaults to config value)
            token: Authorization token configured in Logseq (defaults to config value)
            timeout: Request timeout in seconds (defaults to config value)
            client: Optional pre-built client, mainly for tests
        """
        config = get_config()
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.token = token if token is not None else config.api_token
        self.headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        self.client = client or httpx.AsyncClient(timeout=timeout or config.api_timeout)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.client.aclose()

    async def call(self, method: str, *args: Any) -> Any:
        """
        Invoke an SDK method through the API server.

        Args:
            method: Fully qualified SDK method, e.g. ``logseq.Editor.getPage``
            *args: Positional arguments for the method

        Returns:
            The decoded JSON result (None when the method returned nothing)

        Raises:
            HostError: If the request fails or the server reports an error
        """
        payload = {"method": method, "args": list(args)}
        try:
            response = await self.client.post(f"{self.api_url}/api", json=payload, headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise HostError(method, f"request failed with status {e.response.status_code}")
        except httpx.RequestError as e:
            raise HostError(method, f"failed to connect to Logseq: {e}")

        if not response.content:
            return None

        try:
            result = response.json()
        except ValueError as e:
            raise HostError(method, f"invalid JSON response: {e}")

        if isinstance(result, dict) and set(result) == {"error"}:
            raise HostError(method, str(result["error"]))

        logging.debug(f"{method}{tuple(args)} -> {type(result).__name__}")
        return result

    async def get_current_page(self) -> Optional[Dict[str, Any]]:
        return await self.call("logseq.Editor.getCurrentPage")

    async def get_page(self, page_id: PageId) -> Optional[Dict[str, Any]]:
        return await self.call("logseq.Editor.getPage", page_id)

    async def get_block(self, uuid: str, include_children: bool = False) -> Optional[Dict[str, Any]]:
        return await self.call("logseq.Editor.getBlock", uuid, {"includeChildren": include_children})

    async def get_page_blocks_tree(self, page_id: PageId) -> List[Dict[str, Any]]:
        return await self.call("logseq.Editor.getPageBlocksTree", page_id) or []

    async def get_current_graph(self) -> Optional[Dict[str, Any]]:
        return await self.call("logseq.App.getCurrentGraph")

    async def run_query(self, query: str) -> List[List[Any]]:
        return await self.call("logseq.DB.datascriptQuery", query) or []

    async def show_message(self, message: str, severity: str = "success") -> None:
        try:
            await self.call("logseq.UI.showMsg", message, severity)
        except HostError as e:
            logging.warning(f"Could not show message in Logseq ({e}): {message}")
