from fastapi import APIRouter, Depends

from FinDesk.core.firebase import get_db
from FinDesk.services.deals.deals import recent_deals
from FinDesk.services.lenders.lenders import list_lenders
from FinDesk.services.metrics.metrics import normalize_deals
from .chat import get_ai_response
from .chat_schemas import ChatRequest, ChatResponse

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("", response_model=ChatResponse)
async def chat(req: ChatRequest, db=Depends(get_db)):
    lenders = list_lenders(db)
    deals = normalize_deals(recent_deals(db, limit=20))
    reply = await get_ai_response(req.message, lenders, deals, user_id=req.userId, db=db)
    return ChatResponse(reply=reply)
