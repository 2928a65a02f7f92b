"""
COGS quotation calculator.

  1. Convert every mass component to grams and sum the recipe weight
  2. Pick the smallest pack-weight bracket that holds that weight
  3. Look up the target production time for the format (or use the
     operator's manual time), falling back to a per-gram estimate
  4. COGS = components + packaging + labor
"""
import logging
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Optional

from models.quotation import (
    ComponentCost,
    LaborMatrixEntry,
    LaborResult,
    PackagingSelection,
    PackFormat,
    Quotation,
    QuotationComponent,
    QuotationResult,
)

from .errors import UnsupportedFormatError, UnsupportedUnitError
from .numeric import PRICE_PRECISION, round_to

logger = logging.getLogger(__name__)

DEFAULT_PACK_WEIGHT_OPTIONS = (60, 90, 120, 180, 300, 900)
DEFAULT_MINUTES_PER_GRAM = 0.003

DEFAULT_LABOR_MATRIX = (
    LaborMatrixEntry(pack_weight_min=60, pack_weight_max=180, flavored=None, target_time_sec=15),
    LaborMatrixEntry(pack_weight_min=300, pack_weight_max=300, flavored=True, target_time_sec=17),
    LaborMatrixEntry(pack_weight_min=300, pack_weight_max=300, flavored=False, target_time_sec=15),
    LaborMatrixEntry(pack_weight_min=900, pack_weight_max=900, flavored=None, target_time_sec=40),
)


class Unit(str, Enum):
    KG = "kg"
    G = "g"
    MG = "mg"
    UG = "µg"
    L = "l"
    ML = "ml"
    PCS = "szt."
    CAPS = "caps"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Unit":
        key = (value or "").strip().lower()
        unit = _UNIT_ALIASES.get(key)
        if unit is None:
            raise UnsupportedUnitError(value)
        return unit


_UNIT_ALIASES = {u.value: u for u in Unit}
_UNIT_ALIASES.update({
    "kilogram": Unit.KG, "kilogramy": Unit.KG,
    "gram": Unit.G, "gramy": Unit.G,
    "miligram": Unit.MG, "miligramy": Unit.MG,
    "ug": Unit.UG, "mcg": Unit.UG, "mikrogram": Unit.UG, "mikrogramy": Unit.UG,
    "litr": Unit.L, "litry": Unit.L,
    "mililitr": Unit.ML, "mililitry": Unit.ML,
    "szt": Unit.PCS,
    "kaps": Unit.CAPS,
})

# Only mass units contribute to the recipe weight
GRAMS_PER_UNIT = {
    Unit.KG: 1000.0,
    Unit.G: 1.0,
    Unit.MG: 1e-3,
    Unit.UG: 1e-6,
}


def to_grams(quantity: float, unit: Optional[str]) -> float:
    """Mass of *quantity* in grams; volume and count units weigh nothing here."""
    factor = GRAMS_PER_UNIT.get(Unit.parse(unit))
    if factor is None:
        return 0.0
    return quantity * factor


class QuotationCalculator:
    """
    Labor matrix, pack brackets and rates are injected configuration.

    Usage:
        calc = QuotationCalculator(cost_per_minute=0.45)
        result = calc.calculate(quotation)
    """

    def __init__(
        self,
        labor_matrix: Sequence[LaborMatrixEntry] = DEFAULT_LABOR_MATRIX,
        pack_weight_options: Sequence[int] = DEFAULT_PACK_WEIGHT_OPTIONS,
        cost_per_minute: float = 0.0,
        minutes_per_gram: float = DEFAULT_MINUTES_PER_GRAM,
    ):
        self.labor_matrix = list(labor_matrix)
        self.pack_weight_options = sorted(pack_weight_options)
        self.cost_per_minute = cost_per_minute
        self.minutes_per_gram = minutes_per_gram

    def total_weight_grams(self, components: Iterable[QuotationComponent]) -> float:
        return sum(to_grams(c.quantity, c.unit) for c in components)

    def select_pack_format(self, total_weight_grams: float) -> Optional[PackFormat]:
        """
        Smallest bracket whose capacity holds the recipe.  None when there
        is no mass to pack or the recipe exceeds the largest bracket.
        """
        if total_weight_grams <= 0:
            return None
        for weight in self.pack_weight_options:
            if weight >= total_weight_grams:
                return PackFormat(weight_grams=weight)
        logger.info("Recipe weight %.1f g exceeds every pack bracket", total_weight_grams)
        return None

    def pack_format_for(self, pack_weight: int) -> PackFormat:
        """Validate an operator-chosen pack weight against the brackets."""
        if pack_weight not in self.pack_weight_options:
            raise UnsupportedFormatError(pack_weight, self.pack_weight_options)
        return PackFormat(weight_grams=pack_weight)

    def target_time_sec(self, pack_format: Optional[PackFormat], flavored: bool) -> Optional[float]:
        if pack_format is None:
            return None
        weight = pack_format.weight_grams
        for entry in self.labor_matrix:
            if not entry.pack_weight_min <= weight <= entry.pack_weight_max:
                continue
            if entry.flavored is not None and entry.flavored != bool(flavored):
                continue
            return entry.target_time_sec
        return None

    def labor_cost(
        self,
        pack_format: Optional[PackFormat],
        flavored: bool,
        quantity: float,
        cost_per_minute: Optional[float] = None,
        manual_time_override_sec: Optional[float] = None,
        total_weight_grams: float = 0.0,
    ) -> LaborResult:
        rate = self.cost_per_minute if cost_per_minute is None else cost_per_minute

        if manual_time_override_sec is not None:
            target, source = manual_time_override_sec, "override"
        else:
            target, source = self.target_time_sec(pack_format, flavored), "format"

        if target is None:
            minutes = total_weight_grams * self.minutes_per_gram
            return LaborResult(minutes=minutes, cost=minutes * rate, cost_per_minute=rate, source="weight")

        minutes = target / 60 * quantity
        return LaborResult(
            minutes=minutes,
            cost=minutes * rate,
            cost_per_minute=rate,
            source=source,
            target_time_sec=target,
        )

    def total_cogs(
        self,
        components: Iterable[QuotationComponent],
        packaging: Optional[PackagingSelection],
        labor: LaborResult,
    ) -> float:
        components_cost = sum(c.quantity * c.unit_price for c in components)
        packaging_cost = packaging.unit_price * packaging.quantity if packaging else 0.0
        return components_cost + packaging_cost + labor.cost

    def calculate(self, quotation: Quotation) -> QuotationResult:
        components = quotation.components
        weights = [to_grams(c.quantity, c.unit) for c in components]
        total_weight = sum(weights)

        if quotation.pack_weight is not None:
            pack_format = self.pack_format_for(quotation.pack_weight)
        else:
            pack_format = self.select_pack_format(total_weight)

        packaging = quotation.packaging
        labor = self.labor_cost(
            pack_format,
            quotation.flavored,
            packaging.quantity if packaging else 1.0,
            cost_per_minute=quotation.cost_per_minute,
            manual_time_override_sec=quotation.manual_time_per_unit_sec,
            total_weight_grams=total_weight,
        )

        breakdown = []
        for component, grams in zip(components, weights):
            breakdown.append(ComponentCost(
                name=component.name,
                quantity=component.quantity,
                unit=Unit.parse(component.unit).value,
                unit_price=component.unit_price,
                total_cost=component.quantity * component.unit_price,
                weight_grams=grams,
                percentage=round_to(grams / total_weight * 100, 2) if total_weight > 0 else 0.0,
            ))

        components_cost = sum(c.total_cost for c in breakdown)
        packaging_cost = packaging.unit_price * packaging.quantity if packaging else 0.0
        total = self.total_cogs(components, packaging, labor)

        logger.debug(
            "Quotation %s: %.1f g, format %s, labor %s %.2f min",
            quotation.name, total_weight,
            pack_format.weight_grams if pack_format else "-", labor.source, labor.minutes,
        )
        return QuotationResult(
            total_weight_grams=total_weight,
            pack_format=pack_format,
            components=breakdown,
            labor=labor,
            components_cost=round_to(components_cost, PRICE_PRECISION),
            packaging_cost=round_to(packaging_cost, PRICE_PRECISION),
            labor_cost=round_to(labor.cost, PRICE_PRECISION),
            total_cogs=round_to(total, PRICE_PRECISION),
        )


# ------------------------------------------------------------------
# Functional interface (default matrix and brackets)
# ------------------------------------------------------------------

def total_weight_grams(components: Iterable[QuotationComponent]) -> float:
    return QuotationCalculator().total_weight_grams(components)


def select_pack_format(total_weight_grams: float) -> Optional[PackFormat]:
    return QuotationCalculator().select_pack_format(total_weight_grams)


def labor_cost(
    pack_format: Optional[PackFormat],
    flavored: bool,
    quantity: float,
    cost_per_minute: float,
    manual_time_override_sec: Optional[float] = None,
    total_weight_grams: float = 0.0,
) -> LaborResult:
    return QuotationCalculator().labor_cost(
        pack_format, flavored, quantity, cost_per_minute,
        manual_time_override_sec, total_weight_grams,
    )


def total_cogs(
    components: Iterable[QuotationComponent],
    packaging: Optional[PackagingSelection],
    labor: LaborResult,
) -> float:
    return QuotationCalculator().total_cogs(components, packaging, labor)


def calculate_quotation(quotation: Quotation, cost_per_minute: float = 0.0) -> QuotationResult:
    return QuotationCalculator(cost_per_minute=cost_per_minute).calculate(quotation)
