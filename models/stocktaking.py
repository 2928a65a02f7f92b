from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List

from .fields import Amount, Flag, OptionalAmount


class ItemState(str, Enum):
    """Acceptance state of one stocktaking item."""
    PENDING = "pending"         # Not counted yet
    COUNTED = "counted"         # Counted, not accepted
    CONFLICTED = "conflicted"   # Counted, last accept refused by a reservation conflict
    ACCEPTED = "accepted"


class StocktakingItem(BaseModel):
    """
    One line of a stocktaking: a batch (LOT) or a non-lot inventory item.
    counted_quantity stays None until the item has been physically counted.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    unit: Optional[str] = "szt."
    batch_id: Optional[str] = None
    batch_number: Optional[str] = None
    lot_number: Optional[str] = None

    system_quantity: Amount = 0.0
    counted_quantity: OptionalAmount = None
    unit_price: OptionalAmount = None
    accepted: Flag = False

    @property
    def is_counted(self) -> bool:
        return self.counted_quantity is not None

    @property
    def batch_label(self) -> str:
        return self.batch_number or self.lot_number or "No number"


class Reservation(BaseModel):
    """Quantity of a batch committed to a production task or customer order."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    batch_id: Optional[str] = None
    quantity: Amount = 0.0
    task_or_order_ref: Optional[str] = None
    display_name: Optional[str] = None
    task_number: Optional[str] = None
    mo_number: Optional[str] = None
    client_name: Optional[str] = None

    @property
    def label(self) -> str:
        return (self.display_name or self.task_number or self.mo_number
                or self.task_or_order_ref or "Unknown task")


class Discrepancy(BaseModel):
    """Counted vs system quantity of a counted item."""
    discrepancy: float
    difference_value: Optional[float] = None    # None when the unit price is unknown


class ReconciliationResult(BaseModel):
    """
    A reservation conflict: applying new_quantity to the batch would leave
    less than is already reserved.  Only produced when shortage > 0.
    """
    batch_id: str
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    batch_number: Optional[str] = None
    unit: Optional[str] = None
    current_quantity: float
    new_quantity: float
    discrepancy: float
    difference_value: Optional[float] = None
    total_reserved: float
    shortage: float
    conflicting_reservations: List[Reservation] = Field(default_factory=list)


class InventoryAdjustment(BaseModel):
    """A stock correction that completing the count would book."""
    item_id: Optional[str] = None
    batch_id: Optional[str] = None
    adjustment: float
    new_quantity: float


class AdjustmentPlan(BaseModel):
    positive: List[InventoryAdjustment] = Field(default_factory=list)
    negative: List[InventoryAdjustment] = Field(default_factory=list)


class ReservationCancellation(BaseModel):
    """Reservations on one batch that must be released to resolve a conflict."""
    batch_id: str
    batch_number: Optional[str] = None
    reservation_ids: List[str] = Field(default_factory=list)
    quantity: float = 0.0


class StocktakingStatistics(BaseModel):
    total_items: int = 0
    items_with_discrepancy: int = 0
    items_accurate: int = 0
    positive_discrepancies_count: int = 0
    negative_discrepancies_count: int = 0
    total_positive_discrepancy: float = 0.0
    total_negative_discrepancy: float = 0.0
    total_positive_value: float = 0.0
    total_negative_value: float = 0.0
    total_value: float = 0.0
    accuracy_percentage: float = 100.0
