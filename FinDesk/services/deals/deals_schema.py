# deals_schema.py
from datetime import datetime
from pydantic import BaseModel
from typing import Any, Dict, List, Optional, Union

class Vehicle(BaseModel):
    year: Optional[Union[str, int]] = None
    model: Optional[str] = None
    vin: Optional[str] = None

class Product(BaseModel):
    name: str
    price: Optional[float] = None
    profit: Optional[float] = None

class DealInput(BaseModel):
    userId: str
    customer: Optional[Union[str, Dict[str, Any]]] = None
    vehicle: Optional[Union[Vehicle, str]] = None
    lenderId: Optional[str] = None
    lender: Optional[Union[str, Dict[str, Any]]] = None
    products: List[Union[str, Product]] = []
    profit: Optional[float] = None
    rate: Optional[float] = None
    term: Optional[int] = None
    status: Optional[str] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None

class DealUpdate(BaseModel):
    customer: Optional[Union[str, Dict[str, Any]]] = None
    vehicle: Optional[Union[Vehicle, str]] = None
    lenderId: Optional[str] = None
    lender: Optional[Union[str, Dict[str, Any]]] = None
    products: Optional[List[Union[str, Product]]] = None
    profit: Optional[float] = None
    rate: Optional[float] = None
    term: Optional[int] = None
    status: Optional[str] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None

class DealPage(BaseModel):
    deals: List[Dict[str, Any]]
    lastId: Optional[str] = None
