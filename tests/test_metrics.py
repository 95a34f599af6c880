"""Tests for Pushgateway metrics delivery."""

import httpx
import pytest

from checksum_sync.metrics import (
    MetricType,
    NullSink,
    PushgatewaySink,
    create_sink,
    escape_label_value,
    render_metric,
)
from checksum_sync.services.exceptions import SinkUnavailable


def test_render_metric():
    assert render_metric("synced_files", 3) == "# TYPE synced_files gauge\nsynced_files 3\n"
    assert (
        render_metric("runs_total", 1, MetricType.COUNTER)
        == "# TYPE runs_total counter\nruns_total 1\n"
    )


def test_render_metric_labels():
    body = render_metric("sync_error_message", 1, labels={"error": 'bad "path"\nhere'})

    assert body == (
        "# TYPE sync_error_message gauge\n"
        'sync_error_message{error="bad \\"path\\"\\nhere"} 1\n'
    )


def test_escape_label_value():
    assert escape_label_value("a\\b") == "a\\\\b"


def make_sink(handler) -> PushgatewaySink:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PushgatewaySink("http://pushgateway:9091/", client=client)


@pytest.mark.asyncio
async def test_push_sends_text_format():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    sink = make_sink(handler)
    assert await sink.push("photos", "synced_files", 12)

    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://pushgateway:9091/metrics/job/photos"
    assert request.headers["content-type"].startswith("text/plain")
    assert request.content == b"# TYPE synced_files gauge\nsynced_files 12\n"


def test_job_url_is_quoted():
    sink = PushgatewaySink("http://pg")

    assert sink.job_url("my job/x") == "http://pg/metrics/job/my%20job%2Fx"


@pytest.mark.asyncio
async def test_push_rejected_returns_false():
    sink = make_sink(lambda request: httpx.Response(500))

    assert await sink.push("photos", "synced_files", 1) is False


@pytest.mark.asyncio
async def test_push_unreachable_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    sink = make_sink(handler)

    assert await sink.push("photos", "synced_files", 1) is False
    with pytest.raises(SinkUnavailable):
        await sink.send("photos", "synced_files", 1)


@pytest.mark.asyncio
async def test_push_invalid_url_returns_false():
    sink = PushgatewaySink("http://pushgateway:port")

    assert await sink.push("photos", "synced_files", 1) is False
    with pytest.raises(SinkUnavailable):
        await sink.send("photos", "synced_files", 1)
    await sink.aclose()


@pytest.mark.asyncio
async def test_aclose_keeps_injected_client():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    sink = PushgatewaySink("http://pg", client=client)

    await sink.aclose()

    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_null_sink():
    sink = NullSink()

    assert await sink.push("photos", "synced_files", 1) is False
    await sink.aclose()


def test_create_sink():
    assert isinstance(create_sink(None), NullSink)
    assert isinstance(create_sink(""), NullSink)
    sink = create_sink("http://pg:9091", timeout=2.0)
    assert isinstance(sink, PushgatewaySink)
    assert sink.timeout == 2.0
