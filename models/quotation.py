from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional, List, Literal

from .fields import Amount, Count, Flag, OptionalAmount, empty_if_none


LaborSource = Literal["format", "override", "weight"]


class QuotationComponent(BaseModel):
    """
    A raw material in the recipe.  unit is kept as given; the calculator
    resolves it against the closed unit set and rejects unknown units.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    quantity: Amount = 0.0
    unit: Optional[str] = "kg"
    unit_price: Amount = 0.0


class PackagingSelection(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    quantity: Count = 1.0                   # Units produced; also the labor unit count
    unit_price: Amount = 0.0


class PackFormat(BaseModel):
    """A pack-weight bracket, e.g. the 300 g tub."""
    weight_grams: int


class LaborMatrixEntry(BaseModel):
    """
    Target production time for a range of pack weights.
    flavored=None matches both flavoured and unflavoured products.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pack_weight_min: int
    pack_weight_max: int
    flavored: Optional[bool] = None
    target_time_sec: float


class Quotation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: Optional[str] = None
    components: Annotated[List[QuotationComponent], BeforeValidator(empty_if_none)] = Field(default_factory=list)
    packaging: Optional[PackagingSelection] = None
    flavored: Flag = False
    pack_weight: Optional[int] = None               # Explicit format, skips auto-selection
    manual_time_per_unit_sec: OptionalAmount = None
    cost_per_minute: OptionalAmount = None          # Overrides the configured rate


class LaborResult(BaseModel):
    minutes: float
    cost: float
    cost_per_minute: float
    source: LaborSource
    target_time_sec: Optional[float] = None


class ComponentCost(BaseModel):
    name: Optional[str] = None
    quantity: float
    unit: str
    unit_price: float
    total_cost: float
    weight_grams: float
    percentage: float               # Share of the total mass, 2 dp


class QuotationResult(BaseModel):
    total_weight_grams: float
    pack_format: Optional[PackFormat] = None
    components: List[ComponentCost] = Field(default_factory=list)
    labor: LaborResult
    components_cost: float
    packaging_cost: float
    labor_cost: float
    total_cogs: float
