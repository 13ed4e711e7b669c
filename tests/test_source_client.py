import asyncio
import json

import httpx
import pytest

from conftest import rpc_result
from pnode_monitor.errors import MalformedSourceResponse, SourceUnavailable
from pnode_monitor.services.source_client import SourceClient


def fetch(client, address, method="fetch_pods"):
    async def _run():
        try:
            return await getattr(client, method)(address)
        finally:
            await client.close()

    return asyncio.run(_run())


def test_fetch_pods_from_list_result(transport_factory, pod_factory):
    client = SourceClient(
        transport=transport_factory({"1.1.1.1": rpc_result([pod_factory("pk-a", "9.9.9.1:9001"), pod_factory("pk-b")])})
    )
    pods = fetch(client, "1.1.1.1")
    assert [item.pubkey for item in pods] == ["pk-a", "pk-b"]


def test_fetch_pods_from_object_result(transport_factory, pod_factory):
    client = SourceClient(transport=transport_factory({"1.1.1.1": rpc_result({"pods": [pod_factory("pk-a")], "total_count": 1})}))
    assert [item.pubkey for item in fetch(client, "1.1.1.1")] == ["pk-a"]


def test_request_shape():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=rpc_result([]))

    client = SourceClient(rpc_port=6000, rpc_path="rpc", transport=httpx.MockTransport(handler))
    assert fetch(client, "1.1.1.1") == []

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "http://1.1.1.1:6000/rpc"
    assert json.loads(request.content) == {"jsonrpc": "2.0", "method": "get-pods-with-stats", "id": 1}


def test_malformed_pods_are_skipped_not_fatal(transport_factory, pod_factory):
    pods = [
        pod_factory("pk-a"),
        "not-a-pod",
        {"version": "0.7.0"},
        pod_factory("pk-b", uptime="forever"),
        pod_factory(None, "5.5.5.5:9001"),
    ]
    client = SourceClient(transport=transport_factory({"1.1.1.1": rpc_result(pods)}))
    assert [item.identity for item in fetch(client, "1.1.1.1")] == ["pk-a", "5.5.5.5:9001"]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}}),
    ],
)
def test_http_and_rpc_errors_raise_source_unavailable(transport_factory, response):
    client = SourceClient(transport=transport_factory({"1.1.1.1": response}))
    with pytest.raises(SourceUnavailable) as excinfo:
        fetch(client, "1.1.1.1")
    assert excinfo.value.source == "1.1.1.1"
    assert not isinstance(excinfo.value, MalformedSourceResponse)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json=["not", "an", "envelope"]),
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
        httpx.Response(200, json=rpc_result({"nodes": []})),
        httpx.Response(200, json=rpc_result("pods")),
    ],
)
def test_shape_errors_raise_malformed(transport_factory, response):
    client = SourceClient(transport=transport_factory({"1.1.1.1": response}))
    with pytest.raises(MalformedSourceResponse):
        fetch(client, "1.1.1.1")


def test_connection_errors_raise_source_unavailable(transport_factory):
    client = SourceClient(transport=transport_factory({}))
    with pytest.raises(SourceUnavailable) as excinfo:
        fetch(client, "2.2.2.2")
    assert "ConnectError" in excinfo.value.reason


def test_fetch_nodes_converts_and_tags_provenance(transport_factory, pod_factory):
    client = SourceClient(
        seeds=["1.1.1.1"],
        transport=transport_factory(
            {"1.1.1.1": rpc_result([pod_factory("pk-a", "1.1.1.1:9001"), pod_factory("pk-b", "3.3.3.3:9001")])}
        ),
    )
    nodes = fetch(client, "1.1.1.1", method="fetch_nodes")
    assert [node.identity for node in nodes] == ["pk-a", "pk-b"]
    assert all(node.source_address == "1.1.1.1" for node in nodes)
    assert [node.is_seed for node in nodes] == [True, False]


def test_endpoint_url_accepts_full_urls():
    client = SourceClient()
    assert client.endpoint_url("https://seed.example/rpc") == "https://seed.example/rpc"
    assert client.endpoint_url("4.4.4.4") == "http://4.4.4.4:6000/rpc"
    asyncio.run(client.close())


def test_fetch_stats_calls_get_stats():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=rpc_result({"cpu_percent": 12.5, "uptime": 3600}))

    client = SourceClient(transport=httpx.MockTransport(handler))
    assert fetch(client, "1.1.1.1", "fetch_stats") == {"cpu_percent": 12.5, "uptime": 3600}
    assert seen == [{"jsonrpc": "2.0", "method": "get-stats", "id": 1}]


def test_fetch_stats_rejects_non_object_result(transport_factory):
    client = SourceClient(transport=transport_factory({"1.1.1.1": rpc_result([1, 2])}))
    with pytest.raises(MalformedSourceResponse):
        fetch(client, "1.1.1.1", "fetch_stats")

    client = SourceClient(transport=transport_factory({}))
    with pytest.raises(SourceUnavailable):
        fetch(client, "2.2.2.2", "fetch_stats")
