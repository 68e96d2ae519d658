# metrics_schema.py
from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional

class DealProduct(BaseModel):
    name: str
    price: float = 0
    profit: float = 0

class DealRecord(BaseModel):
    """A deal document coerced into one predictable shape."""
    id: str
    user_id: Optional[str] = None
    customer: str = "Unknown"
    vehicle: str = ""
    lender: str = "Unknown"
    products: List[DealProduct] = []
    profit: float = 0
    apr: float = 0
    term: float = 0
    status: Optional[str] = None
    funded: bool = False
    date: Optional[datetime] = None

class PeriodSummary(BaseModel):
    total_deals: int = 0
    total_profit: float = 0
    avg_profit: float = 0
    products_per_deal: float = 0
    vsc_penetration: float = 0
    gap_penetration: float = 0
    pp_penetration: float = 0
    tire_wheel_penetration: float = 0
    key_penetration: float = 0
    maintenance_penetration: float = 0
    avg_vsc_revenue: float = 0
    avg_gap_revenue: float = 0
    approved_deals: int = 0
    declined_deals: int = 0
    approval_rate: float = 0

class RecentDeal(BaseModel):
    id: str
    customer: str
    vehicle: str
    lender: str
    products: List[str]
    profit: float
    date: Optional[datetime] = None

class DashboardStats(BaseModel):
    total_deals: int
    avg_profit: int
    products_per_deal: float
    goal_progress: int
    recent_deals: List[RecentDeal] = []

class MonthlyRow(BaseModel):
    month: str
    deals: int
    back_end_profit: float
    avg_profit: float
    products_per_deal: float
    goal: float

class ProductRow(BaseModel):
    name: str
    value: int

class LenderRow(BaseModel):
    name: str
    deals: int
    profit: float
    avg_profit: float

class FundingSummary(BaseModel):
    funded: int
    pending: int
    funded_value: float
    funding_rate: int
