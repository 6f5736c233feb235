from typing import Optional


class InvoiceUpdateError(Exception):
    """Base class for every failure of a sales invoice update.

    Whatever the subclass, the update transaction has been rolled back by
    the time the caller sees it.
    """

    def __init__(self, message: str, *, invoice_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.invoice_id = invoice_id


class InvoiceNotFound(InvoiceUpdateError):
    pass


class TypeCoercionError(InvoiceUpdateError):
    """A patch or item value could not be converted to its column type."""


class ReferentialIntegrityError(InvoiceUpdateError):
    """An item or the header points at a product, batch, delivery challan
    line or customer that does not exist."""


class ConstraintViolation(InvoiceUpdateError):
    """A CHECK constraint or the stock ledger rejected the update."""
