import logging
from typing import Iterable, Optional, Union
from uuid import UUID

import psycopg
from psycopg import Connection, errors as pg_errors

from ..errors import (
    ConstraintViolation,
    InvoiceNotFound,
    InvoiceUpdateError,
    ReferentialIntegrityError,
    TypeCoercionError,
)
from ..models.sales_invoice import (
    HeaderPatchLike,
    ItemLike,
    coerce_header_patch,
    coerce_items,
)
from ..repos.sales_invoices import delete_items, insert_items, lock_invoice, patch_header
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)


def _coerce_invoice_id(invoice_id: Union[UUID, str]) -> UUID:
    if isinstance(invoice_id, UUID):
        return invoice_id
    try:
        return UUID(str(invoice_id))
    except ValueError as e:
        raise TypeCoercionError(f"Invalid invoice id: {invoice_id!r}") from e


def _translate(exc: psycopg.Error, invoice_id: UUID) -> InvoiceUpdateError:
    diag = getattr(exc, "diag", None)
    detail = (diag.message_primary if diag is not None else None) or str(exc)
    if isinstance(exc, pg_errors.ForeignKeyViolation):
        return ReferentialIntegrityError(detail, invoice_id=str(invoice_id))
    if isinstance(exc, psycopg.IntegrityError):
        return ConstraintViolation(detail, invoice_id=str(invoice_id))
    if isinstance(exc, psycopg.DataError):
        return TypeCoercionError(detail, invoice_id=str(invoice_id))
    return InvoiceUpdateError(detail, invoice_id=str(invoice_id))


def apply_invoice_update(
    conn: Connection,
    invoice_id: Union[UUID, str],
    header_patch: HeaderPatchLike,
    replacement_items: Iterable[ItemLike],
    *,
    ledger: Optional[StockLedger] = None,
    lock_timeout_ms: Optional[int] = None,
) -> UUID:
    """
    Replace every line of a sales invoice and patch its header in one
    transaction.

    Order inside the transaction:
      1. lock the header row, delete the old lines and put their stock back;
      2. apply the header patch (None keeps a field, `clear` empties it) and
         stamp updated_at;
      3. insert the new lines in the given order and take their stock out.

    Stock for removed lines is restored before any new line is deducted, so
    re-saving an invoice never trips the stock check on its own quantities.

    Any failure rolls back the whole transaction and surfaces as an
    InvoiceUpdateError subclass. If `conn` already has a transaction open the
    work runs in a savepoint and committing is up to the caller.

    Returns the invoice id.
    """
    inv_id = _coerce_invoice_id(invoice_id)
    patch = coerce_header_patch(header_patch)
    items = coerce_items(replacement_items)
    ledger = ledger or StockLedger()

    try:
        with conn.transaction():
            if lock_timeout_ms:
                with conn.cursor() as cur:
                    # SET does not take bind parameters
                    cur.execute(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}")

            if lock_invoice(conn, inv_id) is None:
                raise InvoiceNotFound(f"Sales invoice {inv_id} not found", invoice_id=str(inv_id))

            removed = delete_items(conn, inv_id)
            ledger.lock(
                conn,
                [row["product_id"] for row in removed] + [item.product_id for item in items],
            )
            for row in removed:
                ledger.restore(conn, row)

            updated_id = patch_header(conn, inv_id, patch)
            if updated_id is None:
                raise InvoiceNotFound(f"Sales invoice {inv_id} not found", invoice_id=str(inv_id))

            insert_items(conn, inv_id, items)
            for item in items:
                ledger.deduct(conn, item)
    except InvoiceUpdateError as e:
        logger.warning("Sales invoice %s update rolled back: %s: %s", inv_id, type(e).__name__, e)
        raise
    except psycopg.Error as e:
        err = _translate(e, inv_id)
        logger.warning("Sales invoice %s update rolled back: %s: %s", inv_id, type(err).__name__, err)
        raise err from e

    logger.info(
        "Updated sales invoice %s: removed %d items, inserted %d",
        updated_id,
        len(removed),
        len(items),
    )
    return updated_id
