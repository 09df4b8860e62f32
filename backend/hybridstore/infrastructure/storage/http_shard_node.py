"""Remote shard node: speaks the storage-node web app protocol over httpx.

Every request carries an ``action``; responses are JSON envelopes of the
form ``{"status": "success" | "error", ...}``:

    saveJsonFile      POST  fileId?, fileName, content   → fileId
    vaultFileUpload   POST  fileData (base64), fileName, mimeType → fileId
    getFileContent    GET   fileId                        → content, mimeType?, encoding?
    deleteRemoteFiles POST  fileIds                       → (empty)
    checkQuota        GET                                 → remaining?
    listFiles         GET                                 → files[{fileId, size, modifiedAt}]

Binary uploads never overwrite: the node answers with a fresh file id.
A master node may forward a write to a worker; its reply then carries the
worker's ``nodeUrl``, which becomes the address in the returned pointer.
"""

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from hybridstore.application.interfaces import ShardNode
from hybridstore.domain.entities import JSON_MIME_TYPE, BlobInfo, ShardPayload, ShardPointer
from hybridstore.domain.exceptions import (
    ShardNotFoundError,
    ShardUnreachableError,
    ShardWriteError,
)

logger = logging.getLogger(__name__)


def _parse_timestamp(raw: Any) -> datetime | None:
    """ISO-8601 from the node (JavaScript emits a trailing Z); naive values are UTC."""
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable modifiedAt %r", raw)
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _same_url(a: str, b: str) -> bool:
    return a.rstrip("/") == b.rstrip("/")


class HttpShardNode(ShardNode):
    """Infrastructure adapter: a storage node reachable over HTTP.

    Accepts an injected ``httpx.AsyncClient`` (shared pool, or a mock
    transport in tests); otherwise opens a short-lived client per call.
    """

    def __init__(
        self,
        address: str,
        base_url: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        owns_client: bool = True,
    ):
        self.address = address
        self._base_url = base_url
        self._timeout = timeout
        self._http_client = http_client
        self._owns_client = owns_client

    @property
    def base_url(self) -> str:
        return self._base_url

    def for_url(self, base_url: str) -> "HttpShardNode":
        """A node for another web app URL, addressed by that URL, sharing this client."""
        return HttpShardNode(
            base_url,
            base_url,
            timeout=self._timeout,
            http_client=self._http_client,
            owns_client=False,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)

    async def _call(
        self,
        action: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        shard_id: str | None = None,
    ) -> dict[str, Any]:
        """Send one action and return the decoded success envelope."""
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            if body is None:
                response = await client.get(
                    self._base_url, params={"action": action, **(params or {})}
                )
            else:
                response = await client.post(self._base_url, json={"action": action, **body})
        except httpx.TimeoutException as exc:
            raise ShardUnreachableError(
                f"{action} timed out", node_address=self.address, shard_id=shard_id
            ) from exc
        except httpx.TransportError as exc:
            raise ShardUnreachableError(
                f"{action} failed: {exc}", node_address=self.address, shard_id=shard_id
            ) from exc
        finally:
            if should_close:
                await client.aclose()

        return self._parse_envelope(action, response, shard_id)

    def _parse_envelope(
        self, action: str, response: httpx.Response, shard_id: str | None
    ) -> dict[str, Any]:
        if response.status_code == 404:
            raise ShardNotFoundError(
                f"{action}: not found", node_address=self.address, shard_id=shard_id
            )
        if response.status_code >= 500:
            raise ShardUnreachableError(
                f"{action}: node returned {response.status_code}",
                node_address=self.address,
                shard_id=shard_id,
            )
        try:
            data = response.json()
        except ValueError:
            raise ShardWriteError(
                f"{action}: invalid response ({response.status_code}): {response.text[:200]}",
                node_address=self.address,
                shard_id=shard_id,
            ) from None

        if not isinstance(data, dict) or data.get("status") != "success":
            message = data.get("message", "unknown error") if isinstance(data, dict) else str(data)
            code = data.get("code") if isinstance(data, dict) else None
            logger.warning("Node %s rejected %s: %s", self.address, action, message)
            if code == "not_found":
                raise ShardNotFoundError(message, node_address=self.address, shard_id=shard_id)
            raise ShardWriteError(message, node_address=self.address, shard_id=shard_id)
        return data

    # ── ShardNode ───────────────────────────────────────────────────

    async def put(self, payload: ShardPayload, shard_id: str | None = None, name_hint: str = "") -> ShardPointer:
        if payload.is_json:
            body: dict[str, Any] = {
                "fileName": name_hint or "payload.json",
                "content": payload.data.decode("utf-8"),
            }
            if shard_id:
                body["fileId"] = shard_id
            data = await self._call("saveJsonFile", body=body, shard_id=shard_id)
        else:
            body = {
                "fileData": base64.b64encode(payload.data).decode("ascii"),
                "fileName": name_hint or "blob",
                "mimeType": payload.mime_type,
            }
            data = await self._call("vaultFileUpload", body=body, shard_id=shard_id)

        new_id = data.get("fileId")
        if not new_id:
            raise ShardWriteError(
                "Node accepted the write but returned no fileId",
                node_address=self.address,
                shard_id=shard_id,
            )
        node_url = data.get("nodeUrl")
        if node_url and _same_url(str(node_url), self._base_url):
            node_url = None
        address = str(node_url) if node_url else self.address
        if node_url:
            logger.info("Write to %s was stored on %s", self.address, node_url)
        logger.info("Stored blob: %s/%s (%d bytes)", address, new_id, payload.size)
        return ShardPointer(shard_id=str(new_id), node_address=address)

    async def get(self, shard_id: str) -> ShardPayload:
        data = await self._call("getFileContent", params={"fileId": shard_id}, shard_id=shard_id)
        content = data.get("content")
        if content is None:
            raise ShardNotFoundError("Empty content", node_address=self.address, shard_id=shard_id)

        mime_type = data.get("mimeType") or JSON_MIME_TYPE
        if data.get("encoding") == "base64":
            return ShardPayload(data=base64.b64decode(content), mime_type=mime_type)
        if not isinstance(content, str):
            content = json.dumps(content)
        return ShardPayload(data=content.encode("utf-8"), mime_type=mime_type)

    async def remove(self, shard_id: str) -> None:
        await self._call("deleteRemoteFiles", body={"fileIds": [shard_id]}, shard_id=shard_id)
        logger.info("Deleted blob: %s/%s", self.address, shard_id)

    async def free_space(self) -> int | None:
        data = await self._call("checkQuota")
        remaining = data.get("remaining")
        return int(remaining) if remaining is not None else None

    async def list_blobs(self) -> list[BlobInfo]:
        data = await self._call("listFiles")
        blobs = []
        for item in data.get("files", []):
            blobs.append(
                BlobInfo(
                    pointer=ShardPointer(shard_id=str(item["fileId"]), node_address=self.address),
                    size=int(item.get("size", 0)),
                    modified_at=_parse_timestamp(item.get("modifiedAt")),
                )
            )
        return blobs

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
