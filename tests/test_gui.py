from byondlink.config import ClientConfig
from byondlink.errors import TopicTimeout
from byondlink.gui import NetworkWorker, format_outcome
from byondlink.net.protocol import Reply, ReplyType
from byondlink.net.session import Outcome


def test_format_outcome():
    assert format_outcome("?a", Outcome(reply=Reply(ReplyType.TEXT, "ok"))) == "?a -> 'ok'"
    assert format_outcome("?a", Outcome(reply=Reply(ReplyType.NUMBER, 3.5))) == "?a -> 3.5"
    assert format_outcome("?a", Outcome(reply=Reply(ReplyType.NULL))) == "?a -> null"
    assert format_outcome("?a", Outcome(error=TopicTimeout("timed out"))) == "?a !! timed out"


def test_worker_reports_crashed_query_and_closes_loop(free_port):
    worker = NetworkWorker(ClientConfig(host="127.0.0.1", port=free_port))

    async def explode(query, use_suffix=True, on_event=None):
        raise RuntimeError("boom")

    worker.session.send = explode
    try:
        worker.send("status")
        kind, text = worker.events.get(timeout=2.0)
    finally:
        worker.close()
    assert kind == "error"
    assert "boom" in text
    assert worker.loop.is_closed()
