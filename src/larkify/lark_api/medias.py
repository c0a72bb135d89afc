"""Drive media API wrapper.

:class:`MediaAPI` uploads image bytes into the drive, scoped to the docx
block that will display them, and returns the media ``file_token``.
"""

from __future__ import annotations

from larkify.errors import LarkifyTransformError

from .transport import AsyncLarkTransport

UPLOAD_ALL_PATH = "/open-apis/drive/v1/medias/upload_all"

DOCX_IMAGE = "docx_image"


class MediaAPI:
    """Wrapper for the drive ``medias`` endpoints.

    Parameters
    ----------
    transport:
        A configured :class:`AsyncLarkTransport` instance.
    """

    def __init__(self, transport: AsyncLarkTransport) -> None:
        self._transport = transport

    async def upload(
        self,
        data: bytes,
        file_name: str,
        parent_node: str,
        parent_type: str = DOCX_IMAGE,
    ) -> str:
        """Upload *data* in a single multipart request.

        Parameters
        ----------
        data:
            The file contents.
        file_name:
            Name recorded for the file.
        parent_node:
            The real block id of the image block that owns the media.
        parent_type:
            Upload point type.  ``docx_image`` for images in documents.

        Returns
        -------
        str
            The media ``file_token``.
        """
        response = await self._transport.request(
            "POST",
            UPLOAD_ALL_PATH,
            data={
                "file_name": file_name,
                "parent_type": parent_type,
                "parent_node": parent_node,
                "size": str(len(data)),
            },
            files={"file": (file_name, data)},
        )
        token = response.get("file_token")
        if not token:
            raise LarkifyTransformError(
                message=f"Media upload for {parent_node} returned no file_token",
                context={"field": "file_token", "block_id": parent_node},
            )
        return token
