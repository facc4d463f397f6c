from __future__ import annotations

import asyncio

from quizcast.core.events import GameOverEvent, NewQuestionEvent
from quizcast.core.models import QuizQuestion
from quizcast.server.broadcast import BroadcastHub


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.sent: list[dict] = []
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(payload)


def test_send_to_all_drops_dead_connections():
    async def scenario():
        hub = BroadcastHub()
        alive, dead = FakeWebSocket(), FakeWebSocket(fail=True)
        await hub.connect(alive)
        await hub.connect(dead)

        delivered = await hub.send_to_all({"type": "game-over"})

        return hub, alive, delivered

    hub, alive, delivered = asyncio.run(scenario())

    assert alive.accepted
    assert delivered == 1
    assert hub.connection_count == 1
    assert alive.sent == [{"type": "game-over"}]


def test_publish_from_worker_thread_reaches_clients():
    question = QuizQuestion(
        id=7,
        text="**Bold** question",
        options={"A": "1", "B": "2", "C": "3", "D": "4"},
        correct="2",
    )

    async def scenario():
        hub = BroadcastHub()
        client = FakeWebSocket()
        await hub.start()
        await hub.connect(client)
        await asyncio.to_thread(hub.publish, NewQuestionEvent.from_question(question, 1, 3))
        hub.publish(GameOverEvent())
        for _ in range(100):
            if len(client.sent) == 2:
                break
            await asyncio.sleep(0.01)
        await hub.stop()
        return client

    client = asyncio.run(scenario())

    new_question, game_over = client.sent
    assert new_question["type"] == "new-question"
    assert new_question["prompt_html"] == "<p><strong>Bold</strong> question</p>\n"
    assert "correct" not in new_question
    assert game_over["type"] == "game-over"


def test_publish_without_running_loop_is_dropped():
    hub = BroadcastHub()

    hub.publish(GameOverEvent())

    assert hub.connection_count == 0


def test_disconnect_is_idempotent():
    async def scenario():
        hub = BroadcastHub()
        client = FakeWebSocket()
        await hub.connect(client)
        hub.disconnect(client)
        hub.disconnect(client)
        return hub

    assert asyncio.run(scenario()).connection_count == 0


class PairedWebSocket(FakeWebSocket):
    """Client whose send finishes only after its peer's send has started."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.peer: PairedWebSocket | None = None

    async def send_json(self, payload: dict) -> None:
        self.started.set()
        await self.peer.started.wait()
        self.sent.append(payload)


def test_clients_are_sent_to_concurrently():
    async def scenario():
        hub = BroadcastHub()
        first, second, dead = PairedWebSocket(), PairedWebSocket(), FakeWebSocket(fail=True)
        first.peer, second.peer = second, first
        for websocket in (first, second, dead):
            await hub.connect(websocket)

        delivered = await asyncio.wait_for(hub.send_to_all({"type": "game-over"}), timeout=2)

        return hub, first, second, delivered

    hub, first, second, delivered = asyncio.run(scenario())

    assert delivered == 2
    assert first.sent == second.sent == [{"type": "game-over"}]
    assert hub.connection_count == 2
