from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List, Optional

from .config import ClientConfig, DEFAULT_TIMEOUT, ListenerConfig
from .errors import TopicError
from .net.listener import Handler, TopicListener
from .net.session import Outcome, TopicSession

EVENTS = ("topic", "error", "connect", "end")


class ByondLink:
    """Talks to one world and, optionally, listens for its exports.

    ``send`` queries the world's Topic proc. With ``server_port`` set,
    ``start_server`` opens a listener whose incoming topics are passed to
    ``"topic"`` subscribers, unless ``server_handler`` takes over the
    requests entirely. ``"connect"`` and ``"end"`` subscribers get the query
    of each ``send`` as its connection opens and closes.
    """

    def __init__(
        self,
        host: str,
        port: int,
        server_port: int = 0,
        server_handler: Optional[Handler] = None,
        suffix: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        server_bind: str = "0.0.0.0",
    ) -> None:
        self.session = TopicSession(ClientConfig(host=host, port=port, suffix=suffix, timeout=timeout))
        self.server_port = server_port
        self.last_error: Optional[str] = None
        self._listeners: Dict[str, List[Callable[..., Any]]] = {name: [] for name in EVENTS}
        self.server: Optional[TopicListener] = None
        if server_port:
            self.server = TopicListener(
                ListenerConfig(host=server_bind, port=server_port),
                handler=server_handler,
                on_topic=self._on_topic,
            )

    def _callbacks(self, event: str) -> List[Callable[..., Any]]:
        if event not in self._listeners:
            raise ValueError(f"unknown event {event!r}, expected one of {EVENTS}")
        return self._listeners[event]

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._callbacks(event).append(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        callbacks = self._callbacks(event)
        if callback in callbacks:
            callbacks.remove(callback)

    async def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            result = callback(*args)
            if inspect.isawaitable(result):
                await result

    async def _on_topic(self, topic: str) -> None:
        await self._emit("topic", topic)

    async def send(self, query: str, use_suffix: bool = True) -> Outcome:
        outcome = await self.session.send(query, use_suffix, on_event=lambda event: self._emit(event, query))
        if not outcome.ok:
            self.last_error = str(outcome.error)
            await self._emit("error", outcome.error)
        return outcome

    async def query(self, query: str, use_suffix: bool = True):
        return (await self.send(query, use_suffix)).unwrap()

    async def start_server(self) -> TopicListener:
        if self.server is None:
            raise TopicError("no server_port configured")
        await self.server.start()
        return self.server

    async def stop_server(self) -> None:
        if self.server is not None:
            await self.server.stop()

    async def __aenter__(self) -> "ByondLink":
        if self.server is not None:
            await self.start_server()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop_server()
