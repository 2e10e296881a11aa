import asyncio

import httpx
import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from byondlink.config import ListenerConfig
from byondlink.net.listener import TopicListener, topic_of


def local_listener(**kwargs):
    return TopicListener(ListenerConfig(host="127.0.0.1", port=0), **kwargs)


def url_for(listener, target="/"):
    return f"http://127.0.0.1:{listener.port}{target}"


@pytest.mark.asyncio
async def test_default_reply_and_topic_notification():
    topics = []
    async with local_listener(on_topic=topics.append) as listener:
        async with httpx.AsyncClient() as client:
            response = await client.get(url_for(listener, "/?round_end%26winner=crew"))
    assert response.status_code == 200
    assert response.text == "Success"
    assert topics == ["round_end&winner=crew"]


@pytest.mark.asyncio
async def test_async_notification_callback():
    topics = []

    async def collect(topic):
        topics.append(topic)

    async with local_listener(on_topic=collect) as listener:
        async with httpx.AsyncClient() as client:
            await asyncio.gather(client.get(url_for(listener, "/?a")), client.get(url_for(listener, "/?b")))
    assert sorted(topics) == ["a", "b"]


@pytest.mark.asyncio
async def test_custom_handler_owns_response():
    seen = []

    async def handler(request: Request):
        seen.append(request)
        return PlainTextResponse("pong", status_code=202)

    topics = []
    async with local_listener(handler=handler, on_topic=topics.append) as listener:
        async with httpx.AsyncClient() as client:
            response = await client.get(url_for(listener, "/hook?ping"), headers={"X-Token": "abc"})
    assert response.status_code == 202
    assert response.text == "pong"
    assert topics == []
    assert seen[0].url.path == "/hook"
    assert topic_of(seen[0]) == "ping"
    assert seen[0].headers["x-token"] == "abc"


@pytest.mark.asyncio
async def test_chunked_request_body_is_decoded():
    bodies = []

    async def handler(request: Request):
        bodies.append(await request.body())
        return PlainTextResponse("ok")

    async def chunks():
        yield b"hel"
        yield b"lo"

    async with local_listener(handler=handler) as listener:
        async with httpx.AsyncClient() as client:
            response = await client.post(url_for(listener), content=chunks())
    assert response.status_code == 200
    assert bodies == [b"hello"]


@pytest.mark.asyncio
async def test_handler_without_response_gets_empty_200():
    def handler(request):
        return None

    async with local_listener(handler=handler) as listener:
        async with httpx.AsyncClient() as client:
            response = await client.get(url_for(listener, "/?x"))
    assert response.status_code == 200
    assert response.content == b""


@pytest.mark.asyncio
async def test_malformed_request_gets_400():
    async with local_listener() as listener:
        reader, writer = await asyncio.open_connection("127.0.0.1", listener.port)
        writer.write(b"\x00\x83\x00\x07garbage\r\n\r\n")
        await writer.drain()
        response = await reader.read()
        writer.close()
    assert response.startswith(b"HTTP/1.1 400")


@pytest.mark.asyncio
async def test_failing_handler_gets_500():
    def handler(request):
        raise RuntimeError("boom")

    async with local_listener(handler=handler) as listener:
        async with httpx.AsyncClient() as client:
            response = await client.get(url_for(listener, "/?x"))
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_stop_lets_in_flight_requests_finish():
    entered = asyncio.Event()
    release = asyncio.Event()

    async def handler(request):
        entered.set()
        await release.wait()
        return PlainTextResponse("late")

    listener = local_listener(handler=handler)
    await listener.start()
    url = url_for(listener, "/?slow")
    async with httpx.AsyncClient() as client:
        pending = asyncio.create_task(client.get(url))
        await entered.wait()

        stopping = asyncio.create_task(listener.stop())
        await asyncio.sleep(0.3)
        assert not listener.serving
        async with httpx.AsyncClient() as other:
            with pytest.raises(httpx.ConnectError):
                await other.get(url)

        release.set()
        response = await pending
        await stopping
    assert response.text == "late"


@pytest.mark.asyncio
async def test_port_in_use():
    async with local_listener() as first:
        second = TopicListener(ListenerConfig(host="127.0.0.1", port=first.port))
        with pytest.raises(OSError):
            await second.start()
        assert not second.serving


@pytest.mark.asyncio
async def test_stop_before_start_is_harmless():
    await local_listener().stop()


def test_topic_of_unquotes_query():
    request = Request({"type": "http", "method": "GET", "path": "/path", "query_string": b"a%20b", "headers": []})
    assert topic_of(request) == "a b"
