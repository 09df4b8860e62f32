"""Upload source boundary: a file chosen by the user, not yet read."""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

ByteLoader = Callable[[], Awaitable[bytes] | bytes]


@dataclass(frozen=True)
class UploadItem:
    """``(bytes, mime_type, display_name)`` with lazily-available bytes.

    ``loader`` may be sync or async; ``preview_ref`` is a local handle the
    UI can show immediately and may expire before the upload completes.
    """

    display_name: str
    mime_type: str
    loader: ByteLoader
    preview_ref: str | None = None

    async def read(self) -> bytes:
        data = self.loader()
        if inspect.isawaitable(data):
            data = await data
        return data

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        display_name: str,
        mime_type: str = "application/octet-stream",
        preview_ref: str | None = None,
    ) -> "UploadItem":
        return cls(
            display_name=display_name,
            mime_type=mime_type,
            loader=lambda: data,
            preview_ref=preview_ref,
        )
