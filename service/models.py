"""
Pydantic models for service API requests.
"""
from pydantic import BaseModel, Field
from typing import Optional

from models.fields import OptionalTimestamp
from models.invoice import Invoice
from models.quotation import Quotation
from models.stocktaking import Reservation, StocktakingItem


class SettlementRequest(BaseModel):
    invoice: Invoice
    tolerance: Optional[float] = None
    now: OptionalTimestamp = None       # defaults to the server clock


class SettlementBatchRequest(BaseModel):
    invoices: list[Invoice]
    tolerance: Optional[float] = None
    now: OptionalTimestamp = None


class ProformaAvailabilityRequest(BaseModel):
    proforma: Invoice
    applied_amount: Optional[float] = None


class ItemImpactRequest(BaseModel):
    item: StocktakingItem
    new_quantity: Optional[float] = None     # defaults to the counted quantity
    reservations: list[Reservation] = Field(default_factory=list)


class StocktakingImpactRequest(BaseModel):
    items: list[StocktakingItem]
    reservations: list[Reservation] = Field(default_factory=list)


class StocktakingStatisticsRequest(BaseModel):
    items: list[StocktakingItem]


class QuotationRequest(BaseModel):
    quotation: Quotation
