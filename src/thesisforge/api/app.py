"""FastAPI app.

The service is stateless: clients send the session document with every checkpoint request
and get the updated one back, just like saving and re-loading a session file.
"""

from __future__ import annotations

import contextlib
import json
from collections.abc import Generator
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from thesisforge.agents.advisor import AdvisorAgent
from thesisforge.agents.architect import ArchitectAgent
from thesisforge.config import Settings, load_settings
from thesisforge.errors import (
    AdvisorUnavailableError,
    EmptyResponseError,
    EndpointNotFoundError,
    GatewayError,
    GatewayTimeoutError,
    InvalidTransitionError,
    RateLimitedError,
    RegenerationFailedError,
    SessionFormatError,
    StructureGenerationFailedError,
    ThesisForgeError,
    UnauthorizedError,
)
from thesisforge.llm.client import ApiConfig, LLMClient
from thesisforge.logging import configure_logging, get_logger
from thesisforge.models.outline import UserInput
from thesisforge.orchestrator.runner import ThesisWorkflow
from thesisforge.orchestrator.state import Phase
from thesisforge.session import session_from_dict

_STATUS_BY_ERROR: list[tuple[type[ThesisForgeError], int]] = [
    (UnauthorizedError, 401),
    (RateLimitedError, 429),
    (GatewayTimeoutError, 504),
    (EndpointNotFoundError, 502),
    (EmptyResponseError, 502),
    (GatewayError, 502),
    (AdvisorUnavailableError, 503),
    (RegenerationFailedError, 502),
    (SessionFormatError, 400),
    (InvalidTransitionError, 409),
    (StructureGenerationFailedError, 422),
]


def status_for(error: ThesisForgeError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


class OutlineRequest(BaseModel):
    input: UserInput
    api_config: ApiConfig | None = None


class StepRequest(BaseModel):
    session: dict[str, Any]
    api_config: ApiConfig | None = None


class RegenerateRequest(StepRequest):
    section_ids: list[str] = Field(min_length=1)
    instruction: str | None = None


class DeleteRequest(StepRequest):
    section_ids: list[str] = Field(min_length=1)


class AdvisorRequest(BaseModel):
    history: list[dict[str, str]] = Field(min_length=1)
    api_config: ApiConfig | None = None


def create_app(settings: Settings | None = None, llm: LLMClient | None = None) -> FastAPI:
    """Create FastAPI app."""

    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_file)
    logger = get_logger(__name__)
    llm = llm or LLMClient(settings)

    app = FastAPI(title="ThesisForge", version="0.1.0")

    @app.exception_handler(ThesisForgeError)
    async def handle_error(request: Request, exc: ThesisForgeError) -> JSONResponse:
        status = status_for(exc)
        logger.warning("API request failed", extra={"path": request.url.path, "status": status})
        return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "ValueError", "detail": str(exc)})

    def _workflow(req: StepRequest) -> ThesisWorkflow:
        return ThesisWorkflow(session_from_dict(req.session), llm, api_config=req.api_config)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/outline")
    def outline(req: OutlineRequest) -> dict[str, Any]:
        built = ArchitectAgent(llm, req.api_config).build_outline(req.input)
        return {"sections": built.model_dump(mode="json", exclude_none=True)}

    @app.post("/sessions/step")
    def sessions_step(req: StepRequest) -> dict[str, Any]:
        wf = _workflow(req)
        phase = wf.state.phase
        if phase == Phase.IDLE:
            wf.start()
        elif phase == Phase.FAILED:
            wf.retry()
        else:
            wf.continue_()
        return wf.session.model_dump(mode="json")

    @app.post("/sessions/regenerate")
    def sessions_regenerate(req: RegenerateRequest) -> dict[str, Any]:
        wf = _workflow(req)
        wf.regenerate_selected(req.section_ids, req.instruction)
        return wf.session.model_dump(mode="json")

    @app.post("/sessions/delete")
    def sessions_delete(req: DeleteRequest) -> dict[str, Any]:
        wf = _workflow(req)
        wf.delete_selected(req.section_ids)
        return wf.session.model_dump(mode="json")

    @app.post("/sessions/render")
    def sessions_render(req: StepRequest) -> dict[str, str]:
        return {"markdown": _workflow(req).markdown()}

    @app.post("/advisor/reply")
    def advisor_reply(req: AdvisorRequest) -> dict[str, Any]:
        reply = AdvisorAgent(llm, req.api_config).reply(req.history)
        return {"text": reply.text, "finished": reply.finished, "data": reply.data}

    @app.post("/runs/stream")
    def runs_stream(req: OutlineRequest) -> Response:
        logger.info("API run requested", extra={"topic_len": len(req.input.topic)})
        if not req.input.topic.strip():
            return JSONResponse(status_code=400, content={"error": "ValueError", "detail": "topic is required"})

        wf = ThesisWorkflow.new(req.input, llm, api_config=req.api_config)

        def gen() -> Generator[bytes, None, None]:
            # A client disconnect closes this generator, which stops the run at the next step
            with contextlib.closing(wf.run_stream()) as events:
                try:
                    for ev in events:
                        yield ev.to_sse()
                except ThesisForgeError as e:
                    # The workflow already emitted an agent_failed event
                    logger.warning("Streamed run stopped", extra={"error_type": type(e).__name__})
            final = json.dumps({"session": wf.session.model_dump(mode="json")}, ensure_ascii=False)
            yield f"event: session\ndata: {final}\n\n".encode("utf-8")

        return StreamingResponse(gen(), media_type="text/event-stream")

    return app
