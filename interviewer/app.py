"""FastAPI application — Twilio webhooks + client WebSocket for phone interviews.

Endpoints:

  POST /voice                    Twilio: what to say next (TwiML)
  POST /handle-response          Twilio: recording finished (TwiML)
  POST /transcription-callback   Twilio: transcript ready (ack)
  POST /call-status              Twilio: call status changed (ack)
  GET  /interviews/{id}          Stored interview record
  WS   /ws                       Client: start interviews, receive live updates
  GET  /health                   Health check

The interview flow:
  1. Client sends START_INTERVIEW over /ws → record created, call placed
  2. Twilio fetches /voice → greeting + generated question + <Record transcribe>
  3. Recording done → /handle-response → redirect to /voice, or closing + hangup
  4. Transcript ready → /transcription-callback → record updated, clients notified
  5. Call ends → /call-status → record finalized, session evicted
"""

from __future__ import annotations

# Load .env into os.environ before settings and SDK clients read it.
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

# Configure root logger early so every interviewer.* logger has a handler
# when run via `uvicorn interviewer.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
)

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from interviewer import fsm
from interviewer.config import Settings, settings
from interviewer.errors import RecordNotFoundError
from interviewer.flow import QuestionFlowController
from interviewer.notifications import NotificationHub
from interviewer.questions import OpenAIQuestionGenerator
from interviewer.records import InterviewRecordManager
from interviewer.router import WebhookRouter
from interviewer.session_store import SessionStore
from interviewer.storage import InMemoryInterviewRepository, JsonlInterviewRepository
from interviewer.telephony.twilio_provider import TwilioCallProvider

log = logging.getLogger("interviewer.app")


@dataclass
class Services:
    """Everything the endpoints need, built once per app."""

    controller: QuestionFlowController
    router: WebhookRouter
    notifications: NotificationHub
    settings: Settings


def build_services(config: Settings = settings) -> Services:
    """Wire the default collaborators (Twilio, OpenAI, JSONL or memory storage)."""
    if config.storage_path:
        repository = JsonlInterviewRepository(config.storage_path)
    else:
        repository = InMemoryInterviewRepository()

    provider = TwilioCallProvider(
        account_sid=config.twilio_account_sid,
        auth_token=config.twilio_auth_token,
        from_number=config.twilio_phone_number,
        base_url=config.public_base_url,
        voice=config.tts_voice,
        timeout=config.provider_timeout,
    )
    generator = OpenAIQuestionGenerator(
        api_key=config.openai_api_key,
        model=config.openai_model,
        timeout=config.llm_timeout,
    )
    notifications = NotificationHub()
    controller = QuestionFlowController(
        sessions=SessionStore(),
        records=InterviewRecordManager(repository),
        generator=generator,
        provider=provider,
        notifications=notifications,
        question_limit=config.question_limit,
        record_max_length=config.record_max_length,
    )
    return Services(
        controller=controller,
        router=WebhookRouter(controller, provider),
        notifications=notifications,
        settings=config,
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    services = services or build_services()
    controller = services.controller
    router = services.router
    notifications = services.notifications
    started_at = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        for warning in services.settings.validate_startup():
            log.warning(warning)
        log.info("Interview service ready (question limit %d)", controller.question_limit)
        yield
        dropped = controller.shutdown()
        log.info("Interview service stopped (%d session(s) dropped)", dropped)

    app = FastAPI(
        title="Phone Interviewer",
        description="Automated phone interviews with Twilio and generated questions",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness: confirms the event loop is responsive."""
        return JSONResponse({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.time() - started_at, 1),
            "active_sessions": len(controller.sessions),
        })

    # ── Twilio webhooks ────────────────────────────────────────

    @app.post(fsm.VOICE_PATH)
    async def voice(request: Request) -> Response:
        form = await request.form()
        twiml = await router.voice(
            str(form.get("CallSid", "")),
            request.query_params.get("interview_id"),
        )
        return Response(content=twiml, media_type=router.media_type)

    @app.post(fsm.ADVANCE_PATH)
    async def handle_response(request: Request) -> Response:
        form = await request.form()
        twiml = await router.advance(
            str(form.get("CallSid", "")),
            request.query_params.get("seq"),
        )
        return Response(content=twiml, media_type=router.media_type)

    @app.post(fsm.TRANSCRIPTION_PATH)
    async def transcription_callback(request: Request) -> PlainTextResponse:
        form = await request.form()
        await router.transcription(
            str(form.get("CallSid", "")),
            form.get("TranscriptionText"),
            status=form.get("TranscriptionStatus"),
            seq=request.query_params.get("seq"),
        )
        return PlainTextResponse("OK")

    @app.post(fsm.STATUS_PATH)
    async def call_status(request: Request) -> PlainTextResponse:
        form = await request.form()
        await router.call_status(
            str(form.get("CallSid", "")),
            form.get("CallStatus"),
            request.query_params.get("interview_id"),
        )
        return PlainTextResponse("OK")

    # ── Interview records ─────────────────────────────────────

    @app.get("/interviews/{interview_id}")
    async def get_interview(interview_id: str) -> JSONResponse:
        try:
            record = await controller.records.get(interview_id)
        except RecordNotFoundError:
            return JSONResponse({"error": "Interview not found"}, status_code=404)
        return JSONResponse(record.model_dump(mode="json"))

    # ── Client WebSocket ──────────────────────────────────────

    @app.websocket("/ws")
    async def client_socket(websocket: WebSocket) -> None:
        """Start interviews and stream INTERVIEW_UPDATE events to this client."""
        await websocket.accept()
        log.info("New WebSocket connection established")

        queue = notifications.subscribe()
        send_lock = asyncio.Lock()

        async def _pump() -> None:
            try:
                while True:
                    event = await queue.get()
                    async with send_lock:
                        await websocket.send_json(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Closed socket: stop delivering to this observer only.
                log.info("Dropping observer: %s", e)
                notifications.unsubscribe(queue)

        pump = asyncio.create_task(_pump())
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                # Binary frames arrive as "bytes" and are rejected by the router.
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                reply = await router.handle_client_message(raw)
                async with send_lock:
                    await websocket.send_json(reply)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            log.warning("WebSocket error: %s", e)
        finally:
            notifications.unsubscribe(queue)
            pump.cancel()
            log.info("WebSocket connection closed")

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "interviewer.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
