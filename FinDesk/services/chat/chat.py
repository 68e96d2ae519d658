import logging
from typing import Dict, List, Optional

import httpx
from google.api_core.exceptions import GoogleAPICallError

from FinDesk.core.config import settings
from FinDesk.core.firebase import CHAT_HISTORY_COLLECTION, SERVER_TIMESTAMP
from FinDesk.services.metrics.metrics_schema import DealRecord

logger = logging.getLogger(__name__)


def build_system_prompt(lenders: List[Dict], recent_deals: List[DealRecord]) -> str:
    """Terrance persona for the quick chat, with the dealership's lenders and recent deals."""
    lender_names = ", ".join(l.get("name", "Unknown") for l in lenders) or "none on file"
    avg_profit = round(sum(d.profit for d in recent_deals) / max(len(recent_deals), 1))

    return (
        "You are Terrance, an experienced automotive Finance Director with 20+ years in the industry. "
        "You're direct, knowledgeable and don't waste time with pleasantries. "
        "You respond in short, concise sentences focusing on actionable advice about automotive finance, "
        "insurance products, and sales techniques.\n\n"
        "Context:\n"
        "- You work at a Kia dealership\n"
        "- You are talking to a Finance Manager\n"
        f"- Available lenders: {lender_names}\n"
        f"- Recent deals: {len(recent_deals)} deals in the system\n"
        f"- Average back-end profit: ${avg_profit}\n\n"
        "Keep responses practical, like a finance director coaching a finance manager between deals."
    )


def save_chat_history(db, user_id: str, messages: List[Dict]):
    try:
        db.collection(CHAT_HISTORY_COLLECTION).add({
            "userId": user_id,
            "messages": messages,
            "createdAt": SERVER_TIMESTAMP,
        })
    except GoogleAPICallError as e:
        logger.warning("Could not store chat history for %s: %s", user_id, e)


async def get_ai_response(
    message: str,
    lenders: List[Dict],
    recent_deals: List[DealRecord],
    user_id: Optional[str] = None,
    db=None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    messages = [
        {"role": "system", "content": build_system_prompt(lenders, recent_deals)},
        {"role": "user", "content": message},
    ]
    payload = {
        "model": settings.openai_chat_model,
        "messages": messages,
        "max_tokens": 500,
        "temperature": 0.7,
    }

    try:
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY not set")

        async with httpx.AsyncClient(timeout=30, transport=transport) as client:
            r = await client.post(
                settings.openai_chat_url,
                headers={
                    "Authorization": f"Bearer {settings.openai_api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            r.raise_for_status()
            reply = r.json()["choices"][0]["message"]["content"].strip()
    except Exception as e:
        logger.exception("Chat completion failed")
        return f"System error: {e}. Try again or check your API key configuration."

    if user_id and db is not None:
        save_chat_history(db, user_id, messages[1:] + [{"role": "assistant", "content": reply}])
    return reply
