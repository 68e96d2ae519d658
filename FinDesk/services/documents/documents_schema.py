from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional, Literal

DocumentType = Literal["guidelines", "ratesheet", "forms", "reference"]

class FormField(BaseModel):
    name: str
    value: str
    confidence: float

class ExtractResponse(BaseModel):
    text: str
    form_fields: Optional[List[FormField]] = []

class LenderDocument(BaseModel):
    id: str
    fileName: str
    type: str
    lenderId: str
    fileUrl: Optional[str] = None
    storagePath: Optional[str] = None
    uploadDate: Optional[datetime] = None
    processed: bool = False
    processingStatus: Optional[str] = None
    keyPoints: List[str] = []

class ProcessResult(BaseModel):
    success: bool
    documentId: str
    keyPoints: List[str] = []
    error: Optional[str] = None

class SignedUrl(BaseModel):
    url: str
