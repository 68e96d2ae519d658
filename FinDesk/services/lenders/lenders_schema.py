# lenders_schema.py
from pydantic import BaseModel, ConfigDict
from typing import Dict, List, Optional, Union

class CreditTier(BaseModel):
    name: Optional[str] = ""
    minScore: Optional[Union[int, float, str]] = 0
    maxLTV: Optional[Union[int, float, str]] = 0
    rate: Optional[Union[float, str]] = None
    rates: Optional[Dict[str, Optional[Union[float, str]]]] = None

class LenderInput(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    type: Optional[str] = None
    tiers: Optional[str] = None
    notes: Optional[str] = None
    creditTiers: List[CreditTier] = []
    backendGuidelines: Dict[str, Union[float, int, str, bool, None]] = {}
    vehicleRestrictions: Dict[str, Union[float, int, str, None]] = {}

class VehicleDetails(BaseModel):
    mileage: Optional[float] = None
    year: Optional[int] = None

class LenderMatchRequest(BaseModel):
    creditScore: Optional[float] = None
    vehicle: Optional[VehicleDetails] = None
