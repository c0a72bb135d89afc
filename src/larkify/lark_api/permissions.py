"""Drive permission and contact API wrapper.

:class:`PermissionAPI` adds collaborators to a document, transfers its
ownership, and resolves user emails to user ids.
"""

from __future__ import annotations

from typing import Any

from .transport import AsyncLarkTransport

PERMISSIONS_PATH = "/open-apis/drive/v1/permissions"

BATCH_GET_ID_PATH = "/open-apis/contact/v3/users/batch_get_id"


class PermissionAPI:
    """Wrapper for drive permission members and contact id lookup.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncLarkTransport` instance.
    """

    def __init__(self, transport: AsyncLarkTransport) -> None:
        self._transport = transport

    async def lookup_user_id(self, email: str) -> str | None:
        """Resolve an email address to a ``user_id``, or ``None`` if unknown."""
        data = await self._transport.request(
            "POST",
            BATCH_GET_ID_PATH,
            params={"user_id_type": "user_id"},
            json={"emails": [email]},
        )
        for user in data.get("user_list") or []:
            if user.get("email") == email and user.get("user_id"):
                return user["user_id"]
        return None

    async def add_collaborator(
        self,
        document_id: str,
        member_id: str,
        perm: str = "full_access",
        member_type: str = "userid",
    ) -> dict[str, Any]:
        """Grant *perm* on the document to one member."""
        return await self._transport.request(
            "POST",
            f"{PERMISSIONS_PATH}/{document_id}/members",
            params={"type": "docx", "need_notification": "false"},
            json={
                "member_type": member_type,
                "member_id": member_id,
                "perm": perm,
            },
        )

    async def transfer_owner(
        self,
        document_id: str,
        member_id: str,
        member_type: str = "userid",
        remove_old_owner: bool = False,
    ) -> dict[str, Any]:
        """Make *member_id* the owner of the document.

        The previous owner (the app) keeps full access unless
        *remove_old_owner* is set.
        """
        return await self._transport.request(
            "POST",
            f"{PERMISSIONS_PATH}/{document_id}/members/transfer_owner",
            params={
                "type": "docx",
                "need_notification": "false",
                "remove_old_owner": str(remove_old_owner).lower(),
            },
            json={"member_type": member_type, "member_id": member_id},
        )
