"""
Exceptions raised by the calculators.

Settlement and reservation checks never raise: conflicts and missing data
are ordinary results.  These cover invalid enumerated input and illegal
workflow actions only.
"""
from typing import Optional


class EngineError(Exception):
    """Base class for all calculator errors."""


class UnsupportedUnitError(EngineError, ValueError):
    def __init__(self, unit: Optional[str]):
        self.unit = unit
        super().__init__(f"Unsupported unit: {unit!r}")


class UnsupportedFormatError(EngineError, ValueError):
    def __init__(self, pack_weight, options):
        self.pack_weight = pack_weight
        self.options = list(options)
        super().__init__(
            f"Unsupported pack format {pack_weight!r} g "
            f"(available: {', '.join(str(o) for o in self.options)})"
        )


class NotAProformaError(EngineError, ValueError):
    def __init__(self, invoice_ref: Optional[str]):
        self.invoice_ref = invoice_ref
        super().__init__(f"Invoice {invoice_ref or '(unknown)'} is not a proforma")


class ProformaOverdrawnError(EngineError, ValueError):
    def __init__(self, requested: float, available: float):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot settle {requested:.2f}: only {available:.2f} available on the proforma"
        )


class InvalidTransitionError(EngineError):
    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} an item in state '{state}'")
