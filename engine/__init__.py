from .settlement import SettlementCalculator, derive_settlement_status, derive_proforma_availability
from .stocktaking import (
    StocktakingReconciler, ItemAcceptance,
    compute_discrepancy, check_reservation_impact, aggregate_stocktaking_impact,
    group_reservations_by_batch, plan_reservation_cancellations,
)
from .quotation import (
    QuotationCalculator, Unit,
    total_weight_grams, select_pack_format, labor_cost, total_cogs, calculate_quotation,
)
from .cache import ServiceCache

__all__ = [
    "SettlementCalculator", "derive_settlement_status", "derive_proforma_availability",
    "StocktakingReconciler", "ItemAcceptance",
    "compute_discrepancy", "check_reservation_impact", "aggregate_stocktaking_impact",
    "group_reservations_by_batch", "plan_reservation_cancellations",
    "QuotationCalculator", "Unit",
    "total_weight_grams", "select_pack_format", "labor_cost", "total_cogs", "calculate_quotation",
    "ServiceCache",
]
