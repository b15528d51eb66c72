"""
Base host interface for the exporter.

This module defines the abstract capability set the exporter consumes from
the outliner application. Every method is a coroutine; implementations may
raise any exception and callers decide whether a failure is fatal.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

PageId = Union[str, int]


class BaseHost(ABC):
    """
    Abstract base class for host adapters.

    Each adapter answers the exporter's page, block, graph and query
    lookups from a specific source (the Logseq HTTP API, a snapshot file).
    """

    @abstractmethod
    async def get_current_page(self) -> Optional[Dict[str, Any]]:
        """
        Return the page being viewed, or the focused block when zoomed in.

        Returns:
            The entity dictionary, or None when nothing is open
        """

    @abstractmethod
    async def get_page(self, page_id: PageId) -> Optional[Dict[str, Any]]:
        """
        Look up a page by uuid, name or numeric db id.
        """

    @abstractmethod
    async def get_block(self, uuid: str, include_children: bool = False) -> Optional[Dict[str, Any]]:
        """
        Look up a block by uuid, optionally with its subtree.
        """

    @abstractmethod
    async def get_page_blocks_tree(self, page_id: PageId) -> List[Dict[str, Any]]:
        """
        Return the top-level blocks of a page with their children expanded.
        """

    @abstractmethod
    async def get_current_graph(self) -> Optional[Dict[str, Any]]:
        """
        Return information about the open graph; ``path`` is its root directory.
        """

    @abstractmethod
    async def run_query(self, query: str) -> List[List[Any]]:
        """
        Run a Datalog query and return the result rows.
        """

    @abstractmethod
    async def show_message(self, message: str, severity: str = "success") -> None:
        """
        Notify the user. ``severity`` is one of success, warning or error.
        """
