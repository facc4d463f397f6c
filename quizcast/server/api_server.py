"""FastAPI server exposing the quiz over HTTP and a broadcast WebSocket."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager
import logging

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
import uvicorn

from quizcast.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quizcast.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, WEBSOCKET_PATH
from quizcast.constants.quiz_constants import DEFAULT_LEADERBOARD_LIMIT
from quizcast.core.errors import AlreadyAnsweredError, InvalidInputError, NotFoundError, StoreError
from quizcast.core.events import AnswerResultMessage, LeaderboardEntry, NewQuestionEvent
from quizcast.core.models import GameSessionRecord, LeaderboardRow
from quizcast.core.quiz_manager import QuizManager
from quizcast.server.broadcast import BroadcastHub
from quizcast.server.schemas import (
    BulkImportPayload,
    JoinGamePayload,
    LiveAnswerMessage,
    NewGamePayload,
    QuestionPayload,
    SubmitAnswerPayload,
    UserPayload,
)

logger = logging.getLogger(__name__)


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except InvalidInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AlreadyAnsweredError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="Server error") from exc


def _leaderboard_payload(rows: list[LeaderboardRow]) -> list[dict[str, object]]:
    return [LeaderboardEntry.from_row(row).model_dump() for row in rows]


def _game_payload(game: GameSessionRecord) -> dict[str, object]:
    return {
        "ok": True,
        "game_id": game.game_id,
        "game_name": game.game_name,
        "game_code": game.game_code,
    }


_UNSUPPORTED_MESSAGE = {"type": "error", "message": "Unsupported message."}


def _parse_live_message(raw: str | None) -> LiveAnswerMessage | None:
    """Parse a text frame; binary frames and unknown shapes yield None."""
    if raw is None:
        return None
    try:
        return LiveAnswerMessage.model_validate_json(raw)
    except ValidationError:
        return None


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(
    quiz_manager: QuizManager,
    hub: BroadcastHub,
    run_sequencer: bool = True,
) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager and hub."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await hub.start()
        await run_in_threadpool(quiz_manager.start, run_sequencer)
        try:
            yield
        finally:
            await run_in_threadpool(quiz_manager.shutdown)
            await hub.stop()

    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
        lifespan=lifespan,
    )
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.get("/")
    def health() -> dict[str, object]:
        return {"status": "ok", "app": APP_NAME}

    @app.get("/session")
    def get_session(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        snapshot = manager.get_session_snapshot()
        question = None
        if snapshot.question is not None:
            question = NewQuestionEvent.from_question(
                snapshot.question,
                snapshot.current_index + 1,
                snapshot.total_questions,
            ).model_dump()
        return {
            "phase": snapshot.phase.value,
            "position": snapshot.current_index + 1,
            "total": snapshot.total_questions,
            "accepting_answers": snapshot.accepting_answers,
            "question": question,
        }

    @app.post("/users")
    def upsert_user(payload: UserPayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _http_errors():
            user = manager.upsert_user(payload.uid, payload.email, payload.display_name)
        return {
            "ok": True,
            "user_id": user.user_id,
            "user": {
                "user_id": user.user_id,
                "uid": user.uid,
                "email": user.email,
                "display_name": user.display_name,
            },
        }

    @app.get("/questions")
    def list_questions(manager: QuizManager = Depends(quiz_manager_dep)) -> list[dict[str, object]]:
        return [
            {
                "id": question.id,
                "text": question.text,
                "options": question.options,
                "difficulty": question.difficulty,
            }
            for question in manager.get_loaded_questions()
        ]

    @app.post("/questions", status_code=201)
    def add_question(payload: QuestionPayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _http_errors():
            question_id = manager.add_question(
                payload.text,
                payload.options(),
                payload.correct,
                payload.difficulty,
            )
        return {"message": "Question added", "question_id": question_id}

    @app.post("/questions/bulk")
    def import_questions(
        payload: BulkImportPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            report = manager.import_questions(payload.rows)
        return {
            "ok": True,
            "parsedRows": report.parsed_rows,
            "inserted": report.inserted,
            "skipped": report.skipped,
            "errors": [{"row": error.row, "error": error.error, "raw": error.raw} for error in report.errors],
        }

    @app.post("/submit-answer")
    def submit_answer(
        payload: SubmitAnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        with _http_errors():
            recorded = manager.submit_answer(
                payload.user_id,
                payload.question_id,
                payload.selected,
                payload.game_name,
            )
        performance = recorded.performance
        return {
            "ok": True,
            "is_correct": recorded.is_correct,
            "first_correct": recorded.first_correct,
            "points_awarded": recorded.points_awarded,
            "total_score": performance.score,
            "attempts": performance.attempts,
            "correct": performance.correct,
            "accuracy": performance.accuracy,
            "game_score": recorded.game_score.score if recorded.game_score else None,
        }

    @app.post("/games", status_code=201)
    def create_game(payload: NewGamePayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _http_errors():
            game = manager.create_game(payload.game_name, payload.teacher_id, payload.uid)
        return _game_payload(game)

    @app.get("/games/by-code/{code}")
    def get_game_by_code(code: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _http_errors():
            game = manager.resolve_game_code(code)
        return _game_payload(game)

    @app.post("/join-game")
    def join_game(payload: JoinGamePayload, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        with _http_errors():
            user_id = manager.join_game(payload.user_id, payload.game_id)
        return {"ok": True, "message": "Joined game", "user_id": user_id}

    @app.get("/leaderboard/global")
    def global_leaderboard(
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        with _http_errors():
            return _leaderboard_payload(manager.get_global_leaderboard(limit))

    @app.get("/leaderboard/games/{game_id}")
    def game_leaderboard(
        game_id: int,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        with _http_errors():
            return _leaderboard_payload(manager.get_game_leaderboard(game_id, limit))

    @app.get("/leaderboard/named/{game_name}")
    def named_game_leaderboard(
        game_name: str,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        with _http_errors():
            return _leaderboard_payload(manager.get_named_game_leaderboard(game_name, limit))

    @app.websocket(WEBSOCKET_PATH)
    async def live_channel(websocket: WebSocket) -> None:
        await hub.connect(websocket)
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
                message = _parse_live_message(frame.get("text"))
                if message is None:
                    logger.debug("Rejected unsupported socket message")
                    await websocket.send_json(_UNSUPPORTED_MESSAGE)
                    continue
                outcome = await run_in_threadpool(
                    quiz_manager.submit_live_answer,
                    message.user_id,
                    message.answer,
                )
                result = AnswerResultMessage(
                    status=outcome.status.value,
                    message=outcome.message,
                    points=outcome.points,
                    question_id=outcome.question_id,
                )
                await websocket.send_json(result.model_dump(mode="json"))
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    return app


def run_api_server(
    quiz_manager: QuizManager,
    hub: BroadcastHub,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(quiz_manager, hub)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
