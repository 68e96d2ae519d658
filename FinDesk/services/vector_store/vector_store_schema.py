from typing import List, Optional

from pydantic import BaseModel


class SyncRequest(BaseModel):
    userId: str


class LenderNotesRequest(BaseModel):
    userId: str
    notes: Optional[str] = None


class FileAssociation(BaseModel):
    vectorStoreId: str
    fileId: Optional[str] = None
    status: str
    apiSuccess: Optional[bool] = None
    lenderCount: Optional[int] = None


class VectorStoreRef(BaseModel):
    id: str
    openaiId: str
    name: Optional[str] = None
    fileCount: int = 0
    files: List[str] = []
