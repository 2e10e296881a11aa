from __future__ import annotations

import asyncio
import queue
import threading
import time
from typing import List, Optional, Tuple

import pygame

from .config import ClientConfig, ListenerConfig
from .net.listener import TopicListener
from .net.protocol import ReplyType
from .net.session import Outcome, TopicSession


def format_outcome(query: str, outcome: Outcome) -> str:
    if not outcome.ok:
        return f"{query} !! {outcome.error}"
    reply = outcome.reply
    if reply is None or reply.type is ReplyType.NULL:
        return f"{query} -> null"
    if reply.type is ReplyType.NUMBER:
        return f"{query} -> {reply.value:g}"
    return f"{query} -> {reply.value!r}"


class NetworkWorker:
    """Runs an asyncio loop on a background thread for the console.

    Finished queries and incoming topics are posted to ``events`` as
    ``(kind, text)`` tuples so the render loop never blocks on the network.
    """

    def __init__(self, cfg: ClientConfig, listen_port: int = 0) -> None:
        self.session = TopicSession(cfg)
        self.events: "queue.Queue[Tuple[str, str]]" = queue.Queue()
        self.loop = asyncio.new_event_loop()
        self.listener: Optional[TopicListener] = None
        if listen_port:
            self.listener = TopicListener(ListenerConfig(port=listen_port), on_topic=self._on_topic)
        self.thread = threading.Thread(target=self._run_loop, daemon=True)
        self.thread.start()
        if self.listener is not None:
            future = asyncio.run_coroutine_threadsafe(self.listener.start(), self.loop)
            future.add_done_callback(self._listener_started)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def _listener_started(self, future) -> None:
        if future.exception() is not None:
            self.events.put(("fault", f"listener failed: {future.exception()}"))
        else:
            self.events.put(("info", f"listening for topics on port {self.listener.port}"))

    def _on_topic(self, topic: str) -> None:
        self.events.put(("topic", topic))

    async def _send(self, query: str) -> None:
        outcome = await self.session.send(query)
        self.events.put(("reply" if outcome.ok else "error", format_outcome(query, outcome)))

    def _send_done(self, future) -> None:
        if not future.cancelled() and future.exception() is not None:
            self.events.put(("error", f"query crashed: {future.exception()!r}"))

    def send(self, query: str) -> None:
        future = asyncio.run_coroutine_threadsafe(self._send(query), self.loop)
        future.add_done_callback(self._send_done)

    def try_get(self) -> Optional[Tuple[str, str]]:
        try:
            return self.events.get_nowait()
        except queue.Empty:
            return None

    def close(self) -> None:
        if self.listener is not None:
            asyncio.run_coroutine_threadsafe(self.listener.stop(), self.loop).result(timeout=2.0)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=2.0)
        if not self.thread.is_alive():
            self.loop.close()


# --------------------------- Pygame rendering ---------------------------

WINDOW_BG = (15, 18, 25)
INPUT_BG = (23, 28, 38)
TEXT = (230, 235, 245)
SUBTEXT = (155, 165, 185)
ACCENT = (58, 123, 213)
REPLY = (90, 200, 120)
ERROR = (232, 93, 117)
TOPIC = (240, 190, 90)

WIDTH = 900
HEIGHT = 600
PADDING = 20
LINE_HEIGHT = 22
INPUT_HEIGHT = 40
MAX_LOG = 500

KIND_COLORS = {"reply": REPLY, "error": ERROR, "fault": ERROR, "topic": TOPIC, "sent": SUBTEXT, "info": SUBTEXT}


class TopicConsole:
    def __init__(self, cfg: ClientConfig, listen_port: int = 0) -> None:
        pygame.init()
        pygame.display.set_caption(f"byondlink - {cfg.host}:{cfg.port}")
        self.screen = pygame.display.set_mode((WIDTH, HEIGHT))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("Consolas", 18)
        self.font_small = pygame.font.SysFont("Arial", 16)

        self.cfg = cfg
        self.worker = NetworkWorker(cfg, listen_port)
        self.text = ""
        self.history: List[str] = []
        self.history_pos = 0
        self.lines: List[Tuple[str, str]] = []
        self.pending = 0
        self.running = True

    def log(self, kind: str, text: str) -> None:
        self.lines.append((kind, text))
        del self.lines[:-MAX_LOG]

    def submit(self) -> None:
        query = self.text.strip()
        if not query:
            return
        self.history.append(query)
        self.history_pos = len(self.history)
        self.text = ""
        self.log("sent", f"> {query}")
        self.pending += 1
        self.worker.send(query)

    def recall(self, step: int) -> None:
        if not self.history:
            return
        self.history_pos = max(0, min(len(self.history), self.history_pos + step))
        self.text = self.history[self.history_pos] if self.history_pos < len(self.history) else ""

    # --------------------------- Draw ---------------------------
    def draw(self) -> None:
        self.screen.fill(WINDOW_BG)
        header = self.font_small.render(
            f"World {self.cfg.host}:{self.cfg.port}   pending: {self.pending}", True, SUBTEXT
        )
        self.screen.blit(header, (PADDING, PADDING // 2))

        log_top = PADDING + LINE_HEIGHT
        log_bottom = HEIGHT - INPUT_HEIGHT - PADDING * 2
        visible = max(1, (log_bottom - log_top) // LINE_HEIGHT)
        y = log_top
        for kind, text in self.lines[-visible:]:
            surf = self.font.render(text, True, KIND_COLORS.get(kind, TEXT))
            self.screen.blit(surf, (PADDING, y))
            y += LINE_HEIGHT

        rect = pygame.Rect(PADDING, HEIGHT - INPUT_HEIGHT - PADDING, WIDTH - PADDING * 2, INPUT_HEIGHT)
        pygame.draw.rect(self.screen, INPUT_BG, rect, border_radius=6)
        pygame.draw.rect(self.screen, ACCENT, rect, 2, border_radius=6)
        cursor = "_" if int(time.time() * 2) % 2 == 0 else " "
        prompt = self.font.render("?" + self.text.lstrip("?") + cursor, True, TEXT)
        self.screen.blit(prompt, (rect.x + 10, rect.y + (INPUT_HEIGHT - prompt.get_height()) // 2))
        pygame.display.flip()

    # --------------------------- Loop ---------------------------
    def run(self) -> None:
        while self.running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_ESCAPE:
                        self.running = False
                    elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                        self.submit()
                    elif event.key == pygame.K_BACKSPACE:
                        self.text = self.text[:-1]
                    elif event.key == pygame.K_UP:
                        self.recall(-1)
                    elif event.key == pygame.K_DOWN:
                        self.recall(1)
                elif event.type == pygame.TEXTINPUT:
                    self.text += event.text

            item = self.worker.try_get()
            while item:
                kind, text = item
                if kind in ("reply", "error") and self.pending:
                    self.pending -= 1
                self.log(kind, text)
                item = self.worker.try_get()

            self.draw()
            self.clock.tick(30)

        self.worker.close()
        pygame.quit()


# --------------------------- Entrypoints ---------------------------

def run_console(cfg: ClientConfig, listen_port: int = 0) -> None:
    console = TopicConsole(cfg, listen_port)
    console.run()
