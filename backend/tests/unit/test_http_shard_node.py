"""Unit tests for the HttpShardNode (storage-node web app protocol)."""

import base64
import json

import httpx
import pytest

from hybridstore.domain.entities import ShardPayload, ShardPointer
from hybridstore.domain.exceptions import (
    ShardNotFoundError,
    ShardUnreachableError,
    ShardWriteError,
)
from hybridstore.infrastructure.storage import HttpShardNode

BASE_URL = "https://storage.example/exec"


# ── Helpers ──


def _node(handler) -> HttpShardNode:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpShardNode("remote-1", BASE_URL, http_client=client)


def _recording_handler(response_data: dict, status_code: int = 200):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=response_data)

    return handler, requests


# ── Tests ──


@pytest.mark.asyncio
async def test_put_json_uses_save_json_file():
    handler, requests = _recording_handler({"status": "success", "fileId": "f-1"})
    node = _node(handler)

    pointer = await node.put(ShardPayload.from_json({"a": 1}), "f-0", name_hint="vault_1.json")

    assert pointer == ShardPointer(shard_id="f-1", node_address="remote-1")
    body = json.loads(requests[0].content)
    assert body["action"] == "saveJsonFile"
    assert body["fileId"] == "f-0"
    assert body["fileName"] == "vault_1.json"
    assert json.loads(body["content"]) == {"a": 1}


@pytest.mark.asyncio
async def test_put_binary_uses_vault_file_upload():
    handler, requests = _recording_handler({"status": "success", "fileId": "bin-9"})
    node = _node(handler)

    pointer = await node.put(ShardPayload.from_bytes(b"\x00\x01", "image/png"), name_hint="a.png")

    assert pointer.shard_id == "bin-9"
    body = json.loads(requests[0].content)
    assert body["action"] == "vaultFileUpload"
    assert base64.b64decode(body["fileData"]) == b"\x00\x01"
    assert body["mimeType"] == "image/png"
    assert "fileId" not in body


@pytest.mark.asyncio
async def test_get_decodes_json_content():
    handler, requests = _recording_handler({"status": "success", "content": "[1, 2, 3]"})
    node = _node(handler)

    payload = await node.get("f-1")

    assert payload.to_json() == [1, 2, 3]
    assert requests[0].method == "GET"
    assert requests[0].url.params["action"] == "getFileContent"
    assert requests[0].url.params["fileId"] == "f-1"


@pytest.mark.asyncio
async def test_get_decodes_base64_content():
    encoded = base64.b64encode(b"\x89PNG").decode()
    handler, _ = _recording_handler(
        {"status": "success", "content": encoded, "encoding": "base64", "mimeType": "image/png"}
    )

    payload = await _node(handler).get("img-1")

    assert payload.data == b"\x89PNG"
    assert payload.mime_type == "image/png"


@pytest.mark.asyncio
async def test_not_found_code_maps_to_shard_not_found():
    handler, _ = _recording_handler({"status": "error", "code": "not_found", "message": "gone"})

    with pytest.raises(ShardNotFoundError):
        await _node(handler).get("stale")


@pytest.mark.asyncio
async def test_http_404_maps_to_shard_not_found():
    handler, _ = _recording_handler({}, status_code=404)

    with pytest.raises(ShardNotFoundError):
        await _node(handler).get("stale")


@pytest.mark.asyncio
async def test_error_status_maps_to_write_error():
    handler, _ = _recording_handler({"status": "error", "message": "quota exceeded"})

    with pytest.raises(ShardWriteError, match="quota exceeded"):
        await _node(handler).put(ShardPayload.from_json({}))


@pytest.mark.asyncio
async def test_missing_file_id_is_a_write_error():
    handler, _ = _recording_handler({"status": "success"})

    with pytest.raises(ShardWriteError):
        await _node(handler).put(ShardPayload.from_json({}))


@pytest.mark.asyncio
async def test_server_error_maps_to_unreachable():
    handler, _ = _recording_handler({}, status_code=503)

    with pytest.raises(ShardUnreachableError):
        await _node(handler).remove("f-1")


@pytest.mark.asyncio
async def test_transport_error_maps_to_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ShardUnreachableError) as exc_info:
        await _node(handler).get("f-1")

    assert exc_info.value.node_address == "remote-1"


@pytest.mark.asyncio
async def test_timeout_maps_to_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ShardUnreachableError):
        await _node(handler).free_space()


@pytest.mark.asyncio
async def test_remove_sends_delete_remote_files():
    handler, requests = _recording_handler({"status": "success"})

    await _node(handler).remove("f-7")

    body = json.loads(requests[0].content)
    assert body == {"action": "deleteRemoteFiles", "fileIds": ["f-7"]}


@pytest.mark.asyncio
async def test_free_space_reads_check_quota():
    handler, requests = _recording_handler({"status": "success", "remaining": 1234})

    assert await _node(handler).free_space() == 1234
    assert requests[0].url.params["action"] == "checkQuota"


@pytest.mark.asyncio
async def test_free_space_without_signal_is_none():
    handler, _ = _recording_handler({"status": "success"})

    assert await _node(handler).free_space() is None


@pytest.mark.asyncio
async def test_list_blobs_parses_inventory():
    handler, _ = _recording_handler(
        {
            "status": "success",
            "files": [
                {"fileId": "a", "size": 10, "modifiedAt": "2026-01-02T03:04:05+00:00"},
                {"fileId": "b", "size": 3},
            ],
        }
    )

    blobs = await _node(handler).list_blobs()

    assert [b.pointer.shard_id for b in blobs] == ["a", "b"]
    assert blobs[0].modified_at.year == 2026
    assert blobs[1].modified_at is None


@pytest.mark.asyncio
async def test_put_reports_worker_node_url():
    handler, _ = _recording_handler(
        {"status": "success", "fileId": "f1", "nodeUrl": "https://worker-2.example/exec"}
    )

    pointer = await _node(handler).put(ShardPayload.from_json({"x": 1}))

    assert pointer == ShardPointer(shard_id="f1", node_address="https://worker-2.example/exec")


@pytest.mark.asyncio
async def test_put_with_own_node_url_keeps_address():
    handler, _ = _recording_handler({"status": "success", "fileId": "f1", "nodeUrl": BASE_URL + "/"})

    pointer = await _node(handler).put(ShardPayload.from_json({"x": 1}))

    assert pointer.node_address == "remote-1"


@pytest.mark.asyncio
async def test_for_url_shares_client_without_owning_it():
    handler, requests = _recording_handler({"status": "success", "content": "{}"})
    master = _node(handler)

    worker = master.for_url("https://worker-2.example/exec")
    await worker.get("f1")
    await worker.aclose()
    await worker.get("f2")

    assert worker.address == worker.base_url == "https://worker-2.example/exec"
    assert [r.url.host for r in requests] == ["worker-2.example", "worker-2.example"]
