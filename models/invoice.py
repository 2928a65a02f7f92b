from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional, List

from .fields import Amount, Flag, OptionalTimestamp, empty_if_none


class ProformaAllocation(BaseModel):
    """An amount of a proforma applied to this invoice as an advance payment."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    proforma_id: Optional[str] = None
    proforma_number: Optional[str] = None
    amount: Amount = 0.0


class Payment(BaseModel):
    """A single direct payment recorded against an invoice."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    amount: Amount = 0.0
    date: OptionalTimestamp = None
    method: Optional[str] = None        # e.g. "przelew", "gotówka"
    reference: Optional[str] = None
    description: Optional[str] = None


class Invoice(BaseModel):
    """
    Invoice (or proforma) as stored by the record store.

    Field names follow the stored documents (camelCase aliases) and every
    numeric field defaults to 0 when missing or unparseable.  Only one of
    proform_allocation / settled_advance_payments is populated in practice.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    number: Optional[str] = None
    currency: Optional[str] = "EUR"

    total: Amount = 0.0                     # Gross amount, negative for corrections
    total_paid: Amount = 0.0                # Sum of direct payments
    payments: Annotated[List[Payment], BeforeValidator(empty_if_none)] = Field(default_factory=list)

    proform_allocation: Optional[List[ProformaAllocation]] = None
    settled_advance_payments: Amount = 0.0  # Used when no allocation list exists
    required_advance_payment_percentage: Amount = 0.0   # 0-100

    due_date: OptionalTimestamp = None
    is_proforma: Flag = False

    # Proforma only: how much has already been applied to other invoices
    used_as_advance_payment: Amount = 0.0
    linked_advance_invoices: Annotated[List[str], BeforeValidator(empty_if_none)] = Field(default_factory=list)
