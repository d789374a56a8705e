"""HTTP surface for Krishi-Mitra voice turns."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.krishi.core.config_loader import get_logging_config, load_config_or_empty
from src.krishi.core.logging_setup import configure_logging
from src.krishi.runtime.service import get_runtime_service

app = FastAPI(title="Krishi-Mitra Voice Agent")


class ChatRequest(BaseModel):
    # Optional so a missing field gets the uniform failure body instead of a 422.
    transcript: str | None = None
    userId: str | int | None = None


class IntentRequest(BaseModel):
    text: str


@app.on_event("startup")
def _configure_logging() -> None:
    logging_cfg = get_logging_config(load_config_or_empty())
    configure_logging(str(logging_cfg["level"]), use_json=bool(logging_cfg["json"]))


@app.get("/health")
def health() -> dict:
    return get_runtime_service().health()


@app.post("/api/chat")
def chat(req: ChatRequest) -> JSONResponse:
    status_code, body = get_runtime_service().handle_turn(transcript=req.transcript, user_id=req.userId)
    return JSONResponse(status_code=status_code, content=body)


@app.post("/api/intent")
def intent(req: IntentRequest) -> dict:
    return get_runtime_service().classify_intent(text=req.text)


@app.get("/api/users/{user_id}/logs")
def user_logs(user_id: str, limit: int | None = None) -> dict:
    return get_runtime_service().list_logs(user_id=user_id, limit=limit)


@app.get("/api/users/{user_id}/applications")
def user_applications(user_id: str) -> dict:
    return get_runtime_service().list_applications(user_id=user_id)
