"""
Stocktaking reconciliation.

Compares counted against system quantities and checks whether booking a
corrected quantity would leave a batch short of what is already reserved
for production tasks and orders.

Checks:
  Discrepancy:   counted - system, valued at the unit price
  Reservations:  sum of reservations on the batch vs the new quantity
  Completion:    pre-flight over every counted batch item
Conflicts are returned, never raised: resolving one (cancel the
reservations, force the count, or abandon it) is the caller's decision.
"""
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from models.stocktaking import (
    AdjustmentPlan,
    Discrepancy,
    InventoryAdjustment,
    ItemState,
    ReconciliationResult,
    Reservation,
    ReservationCancellation,
    StocktakingItem,
    StocktakingStatistics,
)

from .errors import InvalidTransitionError
from .numeric import PRICE_PRECISION, QUANTITY_PRECISION, round_to

logger = logging.getLogger(__name__)

DISCREPANCY_EPSILON = 0.001     # Differences below this are counting noise


class StocktakingReconciler:
    """
    Usage:
        reconciler = StocktakingReconciler()
        conflict = reconciler.check_reservation_impact(item, 30.0, reservations)
        if conflict: ...   # ask the operator
    """

    def __init__(
        self,
        quantity_precision: int = QUANTITY_PRECISION,
        discrepancy_epsilon: float = DISCREPANCY_EPSILON,
    ):
        self.quantity_precision = quantity_precision
        self.discrepancy_epsilon = discrepancy_epsilon

    # ------------------------------------------------------------------
    # Discrepancy
    # ------------------------------------------------------------------

    def compute_discrepancy(self, item: StocktakingItem) -> Optional[Discrepancy]:
        """None while the item is still pending (not counted)."""
        if item.counted_quantity is None:
            return None
        discrepancy = round_to(item.counted_quantity - item.system_quantity, self.quantity_precision)
        value = None
        if item.unit_price is not None:
            value = round_to(discrepancy * item.unit_price, PRICE_PRECISION)
        return Discrepancy(discrepancy=discrepancy, difference_value=value)

    # ------------------------------------------------------------------
    # Reservation impact
    # ------------------------------------------------------------------

    def check_reservation_impact(
        self,
        item: StocktakingItem,
        new_quantity: Optional[float],
        reservations: Iterable[Reservation],
    ) -> Optional[ReconciliationResult]:
        """
        Return the conflict that booking *new_quantity* would cause, or None.

        Items without a batch have no reservation semantics.  new_quantity
        defaults to the counted quantity; a pending item with no explicit
        quantity cannot conflict.
        """
        if not item.batch_id:
            return None
        if new_quantity is None:
            new_quantity = item.counted_quantity
        if new_quantity is None:
            return None

        matching = [r for r in reservations if r.batch_id == item.batch_id]
        total_reserved = round_to(sum(r.quantity for r in matching), self.quantity_precision)
        shortage = round_to(total_reserved - new_quantity, self.quantity_precision)
        if shortage <= 0:
            return None

        discrepancy = round_to(new_quantity - item.system_quantity, self.quantity_precision)
        value = None
        if item.unit_price is not None:
            value = round_to(discrepancy * item.unit_price, PRICE_PRECISION)

        logger.info(
            "Batch %s (%s): new quantity %s leaves %s %s short of %s reserved",
            item.batch_label, item.batch_id, new_quantity, shortage, item.unit, total_reserved,
        )
        return ReconciliationResult(
            batch_id=item.batch_id,
            item_id=item.id,
            item_name=item.name,
            batch_number=item.batch_label,
            unit=item.unit,
            current_quantity=item.system_quantity,
            new_quantity=round_to(new_quantity, self.quantity_precision),
            discrepancy=discrepancy,
            difference_value=value,
            total_reserved=total_reserved,
            shortage=shortage,
            conflicting_reservations=matching,
        )

    def aggregate_impact(
        self,
        items: Iterable[StocktakingItem],
        reservations_by_batch: Mapping[str, Sequence[Reservation]],
    ) -> list[ReconciliationResult]:
        """Pre-flight check for completing a stocktaking: all conflicts, in item order."""
        conflicts = []
        for item in items:
            if item.counted_quantity is None or not item.batch_id:
                continue
            conflict = self.check_reservation_impact(
                item, item.counted_quantity, reservations_by_batch.get(item.batch_id, ()),
            )
            if conflict is not None:
                conflicts.append(conflict)
        if conflicts:
            logger.warning("Found %d reservation conflict(s) in stocktaking", len(conflicts))
        return conflicts

    # ------------------------------------------------------------------
    # Completion helpers
    # ------------------------------------------------------------------

    def plan_adjustments(
        self,
        items: Iterable[StocktakingItem],
        only_unaccepted: bool = True,
    ) -> AdjustmentPlan:
        """Stock corrections to book when completing the count."""
        plan = AdjustmentPlan()
        for item in items:
            if only_unaccepted and item.accepted:
                continue
            result = self.compute_discrepancy(item)
            if result is None or abs(result.discrepancy) < self.discrepancy_epsilon:
                continue
            adjustment = InventoryAdjustment(
                item_id=item.id,
                batch_id=item.batch_id,
                adjustment=result.discrepancy,
                new_quantity=round_to(item.system_quantity + result.discrepancy, self.quantity_precision),
            )
            if result.discrepancy > 0:
                plan.positive.append(adjustment)
            else:
                plan.negative.append(adjustment)
        return plan

    def compute_statistics(self, items: Sequence[StocktakingItem]) -> StocktakingStatistics:
        total_items = len(items)
        eps = self.discrepancy_epsilon

        positive_qty = negative_qty = 0.0
        positive_value = negative_value = 0.0
        positive_count = negative_count = 0

        for item in items:
            result = self.compute_discrepancy(item)
            d = result.discrepancy if result else 0.0
            value = d * (item.unit_price or 0.0)
            if d > eps:
                positive_count += 1
                positive_qty += d
                positive_value += value
            elif d < -eps:
                negative_count += 1
                negative_qty += d
                negative_value += value

        with_discrepancy = positive_count + negative_count
        accurate = total_items - with_discrepancy
        return StocktakingStatistics(
            total_items=total_items,
            items_with_discrepancy=with_discrepancy,
            items_accurate=accurate,
            positive_discrepancies_count=positive_count,
            negative_discrepancies_count=negative_count,
            total_positive_discrepancy=round_to(positive_qty, self.quantity_precision),
            total_negative_discrepancy=round_to(negative_qty, self.quantity_precision),
            total_positive_value=round_to(positive_value, PRICE_PRECISION),
            total_negative_value=round_to(negative_value, PRICE_PRECISION),
            total_value=round_to(positive_value + negative_value, PRICE_PRECISION),
            accuracy_percentage=(accurate / total_items * 100) if total_items else 100.0,
        )


def plan_reservation_cancellations(
    conflicts: Iterable[ReconciliationResult],
) -> list[ReservationCancellation]:
    """Batches whose reservations must be released to resolve *conflicts*."""
    plan = []
    for conflict in conflicts:
        if not conflict.conflicting_reservations:
            logger.debug("Skipping batch %s: no reservations to cancel", conflict.batch_id)
            continue
        plan.append(ReservationCancellation(
            batch_id=conflict.batch_id,
            batch_number=conflict.batch_number,
            reservation_ids=[r.id for r in conflict.conflicting_reservations if r.id],
            quantity=conflict.total_reserved,
        ))
    return plan


class ItemAcceptance:
    """
    Per-item acceptance workflow.

      pending  --record_count-->  counted
      counted  --accept-->        accepted | conflicted (stays counted)
      accepted --unaccept-->      counted

    A refused accept keeps the conflict on ``conflict`` so the caller can
    cancel the reservations and retry, force the acceptance, or give up.
    """

    def __init__(self, item: StocktakingItem, reconciler: Optional[StocktakingReconciler] = None):
        self.item = item
        self.reconciler = reconciler or StocktakingReconciler()
        self.conflict: Optional[ReconciliationResult] = None

    @property
    def state(self) -> ItemState:
        if self.item.accepted:
            return ItemState.ACCEPTED
        if self.item.counted_quantity is None:
            return ItemState.PENDING
        if self.conflict is not None:
            return ItemState.CONFLICTED
        return ItemState.COUNTED

    def record_count(self, quantity: float) -> None:
        if self.state == ItemState.ACCEPTED:
            raise InvalidTransitionError(self.state.value, "recount")
        self.item = self.item.model_copy(update={"counted_quantity": quantity})
        self.conflict = None

    def accept(
        self,
        reservations: Iterable[Reservation] = (),
        force: bool = False,
    ) -> Optional[ReconciliationResult]:
        """
        Accept the counted quantity.  Returns the blocking conflict when the
        accept is refused, None once the item is accepted.
        """
        if self.state in (ItemState.PENDING, ItemState.ACCEPTED):
            raise InvalidTransitionError(self.state.value, "accept")

        conflict = self.reconciler.check_reservation_impact(
            self.item, self.item.counted_quantity, reservations,
        )
        if conflict is not None and not force:
            self.conflict = conflict
            return conflict
        if conflict is not None:
            logger.warning(
                "Force-accepting batch %s despite a shortage of %s",
                conflict.batch_id, conflict.shortage,
            )

        self.item = self.item.model_copy(update={"accepted": True})
        self.conflict = None
        return None

    def unaccept(self) -> None:
        if self.state != ItemState.ACCEPTED:
            raise InvalidTransitionError(self.state.value, "unaccept")
        self.item = self.item.model_copy(update={"accepted": False})


# ------------------------------------------------------------------
# Functional interface
# ------------------------------------------------------------------

def compute_discrepancy(item: StocktakingItem) -> Optional[Discrepancy]:
    return StocktakingReconciler().compute_discrepancy(item)


def check_reservation_impact(
    item: StocktakingItem,
    new_quantity: Optional[float],
    reservations: Iterable[Reservation],
) -> Optional[ReconciliationResult]:
    return StocktakingReconciler().check_reservation_impact(item, new_quantity, reservations)


def aggregate_stocktaking_impact(
    items: Iterable[StocktakingItem],
    reservations_by_batch: Mapping[str, Sequence[Reservation]],
) -> list[ReconciliationResult]:
    return StocktakingReconciler().aggregate_impact(items, reservations_by_batch)


def group_reservations_by_batch(
    reservations: Iterable[Reservation],
) -> dict[str, list[Reservation]]:
    grouped: dict[str, list[Reservation]] = {}
    for reservation in reservations:
        if reservation.batch_id:
            grouped.setdefault(reservation.batch_id, []).append(reservation)
    return grouped
