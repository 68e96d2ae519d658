import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from FinDesk.core.firebase import get_db
from FinDesk.services.deals.deals import user_deals
from FinDesk.services.metrics.metrics import build_user_context, normalize_deals
from FinDesk.services.metrics.metrics_route import load_user_profile
from .assistant import AssistantError, get_assistant_service
from .assistant_schema import (
    AssistantReply,
    AssistantRequest,
    ContextChatRequest,
    InitializeRequest,
    InitializeResponse,
    ThreadResetRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Assistant"])


@router.post("/api/assistant", response_model=AssistantReply)
def assistant_proxy(body: AssistantRequest, service=Depends(get_assistant_service)):
    if not body.query or not body.assistantId or not body.userId:
        return JSONResponse(status_code=400, content={"error": "Missing required parameters"})

    try:
        response = service.send_message(
            body.userId,
            body.query,
            assistant_id=body.assistantId,
            vector_store_id=body.vectorStoreId,
        )
    except Exception:
        logger.exception("Assistant proxy failed for user %s", body.userId)
        return JSONResponse(status_code=500, content={"error": "Failed to process request"})
    return {"response": response}


@router.post("/assistant/chat", response_model=AssistantReply)
def chat_with_context(body: ContextChatRequest, service=Depends(get_assistant_service), db=Depends(get_db)):
    context = body.context
    if context is None:
        deals = normalize_deals(user_deals(db, body.userId))
        context = build_user_context(deals, load_user_profile(db, body.userId), datetime.now(timezone.utc))

    try:
        return {"response": service.send_message_with_context(body.userId, body.query, context)}
    except AssistantError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/assistant/thread/reset")
def reset_thread(body: ThreadResetRequest, service=Depends(get_assistant_service)):
    service.clear_thread(body.userId)
    return {"reset": True}


@router.post("/assistant/initialize", response_model=InitializeResponse)
def initialize(body: InitializeRequest, service=Depends(get_assistant_service), db=Depends(get_db)):
    return service.initialize_assistant(db, body.userId)


@router.post("/assistant/analytics")
def analytics_assistant(service=Depends(get_assistant_service)):
    return {"assistantId": service.create_analytics_assistant()}
