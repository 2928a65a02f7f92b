from .invoice import Invoice, Payment, ProformaAllocation
from .settlement import SettlementStatus, ProformaAvailability, PaymentSummary
from .stocktaking import (
    StocktakingItem, Reservation, Discrepancy, ReconciliationResult, ItemState,
    InventoryAdjustment, AdjustmentPlan, ReservationCancellation, StocktakingStatistics,
)
from .quotation import (
    Quotation, QuotationComponent, PackagingSelection, PackFormat,
    LaborMatrixEntry, LaborResult, ComponentCost, QuotationResult,
)

__all__ = [
    "Invoice", "Payment", "ProformaAllocation",
    "SettlementStatus", "ProformaAvailability", "PaymentSummary",
    "StocktakingItem", "Reservation", "Discrepancy", "ReconciliationResult", "ItemState",
    "InventoryAdjustment", "AdjustmentPlan", "ReservationCancellation", "StocktakingStatistics",
    "Quotation", "QuotationComponent", "PackagingSelection", "PackFormat",
    "LaborMatrixEntry", "LaborResult", "ComponentCost", "QuotationResult",
]
