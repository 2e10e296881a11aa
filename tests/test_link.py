import httpx
import pytest

from byondlink import ByondLink, TopicError
from byondlink.errors import TransportError
from byondlink.net.world import FakeWorld, text_reply


@pytest.mark.asyncio
async def test_send_through_link():
    async with FakeWorld(text_reply("pong")) as world:
        link = ByondLink("127.0.0.1", world.port, suffix="&key=k")
        assert await link.query("ping") == "pong"
    assert world.topics == ["?ping&key=k"]
    assert link.last_error is None


@pytest.mark.asyncio
async def test_connect_and_end_events():
    events = []
    async with FakeWorld(text_reply("pong")) as world:
        link = ByondLink("127.0.0.1", world.port)
        link.on("connect", lambda query: events.append(("connect", query)))

        async def ended(query):
            events.append(("end", query))

        link.on("end", ended)
        await link.send("ping")
    assert events == [("connect", "ping"), ("end", "ping")]


@pytest.mark.asyncio
async def test_end_fires_when_world_hangs_up(raw_server):
    async def hang_up(reader, writer):
        await reader.read(4)
        writer.close()

    events = []
    async with raw_server(hang_up) as port:
        link = ByondLink("127.0.0.1", port, timeout=1.0)
        for name in ("connect", "end", "error"):
            link.on(name, lambda *args, name=name: events.append(name))
        outcome = await link.send("ping")
    assert not outcome.ok
    assert events == ["connect", "end", "error"]


@pytest.mark.asyncio
async def test_no_connect_event_when_refused(free_port):
    events = []
    link = ByondLink("127.0.0.1", free_port, timeout=1.0)
    link.on("connect", events.append)
    link.on("end", events.append)
    await link.send("status")
    assert events == []


@pytest.mark.asyncio
async def test_failure_records_last_error_and_fires_event(free_port):
    errors = []
    link = ByondLink("127.0.0.1", free_port, timeout=1.0)
    link.on("error", errors.append)
    outcome = await link.send("status")
    assert not outcome.ok
    assert link.last_error == str(outcome.error)
    assert len(errors) == 1
    assert isinstance(errors[0], TransportError)

    link.off("error", errors.append)
    await link.send("status")
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_server_forwards_topics(free_port):
    topics = []
    link = ByondLink("127.0.0.1", 1, server_port=free_port, server_bind="127.0.0.1")
    link.on("topic", topics.append)
    async with link:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"http://127.0.0.1:{free_port}/?hello")
    assert response.text == "Success"
    assert topics == ["hello"]


@pytest.mark.asyncio
async def test_start_server_without_port():
    with pytest.raises(TopicError):
        await ByondLink("127.0.0.1", 5000).start_server()


def test_unknown_event_names_are_rejected():
    link = ByondLink("127.0.0.1", 5000)
    with pytest.raises(ValueError):
        link.on("data", print)
    with pytest.raises(ValueError, match="unknown event"):
        link.off("data", print)


def test_off_for_unsubscribed_callback_is_harmless():
    link = ByondLink("127.0.0.1", 5000)
    link.off("connect", print)
