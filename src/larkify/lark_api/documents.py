"""Document API wrapper.

:class:`DocumentAPI` wraps the docx ``/documents`` endpoints and delegates
all HTTP concerns (auth, retries, rate limiting) to the transport.
"""

from __future__ import annotations

from typing import Any

from .transport import AsyncLarkTransport

DOCUMENTS_PATH = "/open-apis/docx/v1/documents"


class DocumentAPI:
    """Wrapper for the docx Documents API.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncLarkTransport` instance.
    """

    def __init__(self, transport: AsyncLarkTransport) -> None:
        self._transport = transport

    async def create(
        self,
        title: str | None = None,
        folder_token: str | None = None,
    ) -> dict[str, Any]:
        """Create an empty document.

        Parameters
        ----------
        title:
            Document title.  Omitted when ``None``.
        folder_token:
            Destination folder.  Omitted when ``None``.

        Returns
        -------
        dict
            The ``document`` object: ``document_id``, ``revision_id``,
            ``title``.  Empty when the response carried none.
        """
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if folder_token is not None:
            body["folder_token"] = folder_token
        data = await self._transport.request("POST", DOCUMENTS_PATH, json=body)
        return data.get("document") or {}

    async def retrieve(self, document_id: str) -> dict[str, Any]:
        """Fetch a document's metadata, including its current ``revision_id``."""
        data = await self._transport.request("GET", f"{DOCUMENTS_PATH}/{document_id}")
        return data.get("document") or {}
