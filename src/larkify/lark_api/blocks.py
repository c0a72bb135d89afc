"""Block API wrapper.

:class:`BlockAPI` wraps the docx ``/documents/{id}/blocks`` endpoints:
nested block creation, batch updates, child deletion and paginated child
listing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from .documents import DOCUMENTS_PATH
from .transport import AsyncLarkTransport

CHILDREN_PAGE_SIZE = 500


def extract_id_relations(response: dict[str, Any]) -> list[tuple[str, str]]:
    """Extract ``(temporary_id, block_id)`` pairs from a descendant-creation
    response.

    Entries missing either id are ignored.
    """
    pairs: list[tuple[str, str]] = []
    for relation in response.get("block_id_relations") or []:
        temp_id = relation.get("temporary_block_id")
        real_id = relation.get("block_id")
        if temp_id and real_id:
            pairs.append((temp_id, real_id))
    return pairs


@dataclass
class ChildrenPage:
    """One page of a block's children."""

    items: list[dict[str, Any]] = field(default_factory=list)
    page_token: str | None = None
    has_more: bool = False


class BlockAPI:
    """Wrapper for the docx Blocks API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncLarkTransport` instance.
    """

    def __init__(self, transport: AsyncLarkTransport) -> None:
        self._transport = transport

    async def create_descendants(
        self,
        document_id: str,
        block_id: str,
        children_id: list[str],
        descendants: list[dict[str, Any]],
        index: int | None = None,
    ) -> dict[str, Any]:
        """Create a nested set of blocks under *block_id* in one request.

        Parameters
        ----------
        document_id:
            The target document.
        block_id:
            The existing block (or the document id, for the root) to attach
            under.
        children_id:
            Temporary ids of the blocks attached directly under *block_id*,
            in order.
        descendants:
            Payloads of every block in the request: the direct children and
            all of their descendants, each referencing its own children by
            temporary id.
        index:
            Insert position among existing children.  Appends when ``None``.

        Returns
        -------
        dict
            ``children``, ``document_revision_id`` and
            ``block_id_relations``.
        """
        body: dict[str, Any] = {
            "children_id": children_id,
            "descendants": descendants,
        }
        if index is not None:
            body["index"] = index
        return await self._transport.request(
            "POST",
            f"{DOCUMENTS_PATH}/{document_id}/blocks/{block_id}/descendant",
            json=body,
            params={"document_revision_id": -1},
        )

    async def batch_update(
        self,
        document_id: str,
        requests: list[dict[str, Any]],
    ) -> dict[str, Any]:
        """Apply several block updates (e.g. ``replace_image``) at once."""
        return await self._transport.request(
            "PATCH",
            f"{DOCUMENTS_PATH}/{document_id}/blocks/batch_update",
            json={"requests": requests},
            params={"document_revision_id": -1},
        )

    async def delete_children(
        self,
        document_id: str,
        block_id: str,
        start_index: int,
        end_index: int,
    ) -> dict[str, Any]:
        """Delete the children of *block_id* in ``[start_index, end_index)``."""
        return await self._transport.request(
            "DELETE",
            f"{DOCUMENTS_PATH}/{document_id}/blocks/{block_id}/children/batch_delete",
            json={"start_index": start_index, "end_index": end_index},
            params={"document_revision_id": -1},
        )

    async def list_children(
        self,
        document_id: str,
        block_id: str,
        page_token: str | None = None,
        page_size: int = CHILDREN_PAGE_SIZE,
    ) -> ChildrenPage:
        """Fetch one page of the direct children of *block_id*."""
        params: dict[str, Any] = {"page_size": page_size}
        if page_token:
            params["page_token"] = page_token
        data = await self._transport.request(
            "GET",
            f"{DOCUMENTS_PATH}/{document_id}/blocks/{block_id}/children",
            params=params,
        )
        return ChildrenPage(
            items=list(data.get("items") or []),
            page_token=data.get("page_token"),
            has_more=bool(data.get("has_more")),
        )

    async def iter_children(
        self,
        document_id: str,
        block_id: str,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every direct child of *block_id*, following pagination."""
        async for item in self._transport.paginate(
            f"{DOCUMENTS_PATH}/{document_id}/blocks/{block_id}/children",
            page_size=CHILDREN_PAGE_SIZE,
        ):
            yield item
