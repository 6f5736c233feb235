from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from psycopg import Connection

from ..db import get_conn
from ..errors import (
    ConstraintViolation,
    InvoiceNotFound,
    InvoiceUpdateError,
    ReferentialIntegrityError,
    TypeCoercionError,
)
from ..models.sales_invoice import SalesInvoiceUpdate
from ..repos.sales_invoices import (
    get_invoice_with_items,
    list_invoices as repo_list_invoices,
)
from ..services.invoice_update import apply_invoice_update
from ..settings import settings

router = APIRouter(prefix="/sales-invoices", tags=["sales-invoices"])

# Most specific first: every class below derives from InvoiceUpdateError.
ERROR_STATUS = (
    (InvoiceNotFound, 404),
    (TypeCoercionError, 422),
    (ReferentialIntegrityError, 422),
    (ConstraintViolation, 409),
    (InvoiceUpdateError, 500),
)


def _status_for(exc: InvoiceUpdateError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


# List sales invoices endpoint
@router.get("")
def list_sales_invoices(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    conn: Connection = Depends(get_conn),
) -> Dict[str, Any]:
    items = repo_list_invoices(conn, limit=limit, offset=offset)
    return {"items": items, "limit": limit, "offset": offset}


# Get single invoice with items
@router.get("/{invoice_id}")
def get_sales_invoice(invoice_id: UUID, conn: Connection = Depends(get_conn)):
    inv = get_invoice_with_items(conn, invoice_id)
    if not inv:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return inv


@router.put("/{invoice_id}")
def update_sales_invoice(
    invoice_id: UUID,
    payload: SalesInvoiceUpdate = Body(...),
    conn: Connection = Depends(get_conn),
) -> Dict[str, Any]:
    """Save an edited invoice: patch the header and replace all of its items.

    Header fields left out of `invoice` keep their stored values; `items` is
    always the complete new set of lines.
    """
    try:
        updated_id = apply_invoice_update(
            conn,
            invoice_id,
            payload.invoice,
            payload.items,
            lock_timeout_ms=settings.LOCK_TIMEOUT_MS,
        )
    except InvoiceUpdateError as e:
        raise HTTPException(status_code=_status_for(e), detail=e.message)
    return {"ok": True, "invoice_id": updated_id}
