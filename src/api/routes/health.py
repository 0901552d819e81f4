"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()

SERVICE = "prose-check"
VERSION = "0.1.0"


@router.get("/health")
async def health(request: Request):
    state = request.app.state
    return {
        "status": "ok",
        "service": SERVICE,
        "version": VERSION,
        "checkingService": getattr(state, "checking_client", None) is not None,
        "llmProvider": getattr(state, "chat_service", None) is not None,
    }


@router.get("/")
async def root():
    return {"service": SERVICE, "version": VERSION}
