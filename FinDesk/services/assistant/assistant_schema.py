from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class AssistantRequest(BaseModel):
    query: Optional[str] = None
    vectorStoreId: Optional[str] = None
    assistantId: Optional[str] = None
    userId: Optional[str] = None


class ContextChatRequest(BaseModel):
    userId: str
    query: str
    context: Optional[Dict[str, Any]] = None


class ThreadResetRequest(BaseModel):
    userId: str


class AssistantReply(BaseModel):
    response: str


class InitializeRequest(BaseModel):
    userId: str


class InitializeResponse(BaseModel):
    assistantId: str
    vectorStoreId: str
    fileIds: List[str]
