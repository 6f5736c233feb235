from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from psycopg import Connection

from ..models.sales_invoice import HEADER_FIELDS, InvoiceHeaderPatch, SalesInvoiceItemIn

HEADER_COLUMNS = """
    id, invoice_number, customer_id, invoice_date, due_date, po_number,
    payment_terms, payment_terms_days, subtotal, tax_amount, discount_amount,
    total_amount, notes, created_at, updated_at
"""

ITEM_COLUMNS = """
    id, line_no, product_id, batch_id, delivery_challan_item_id, quantity, unit_price,
    tax_rate, total_amount, max_quantity
"""


def _set_clause(name: str, sql_type: str) -> str:
    # COALESCE keeps the stored value when the patch leaves the field out;
    # clear_<name> is only ever true for nullable columns.
    return (
        f"{name} = CASE WHEN %(clear_{name})s::boolean THEN NULL "
        f"ELSE COALESCE(%({name})s::{sql_type}, {name}) END"
    )


PATCH_HEADER_SQL = (
    "UPDATE sales_invoices SET "
    + ", ".join(_set_clause(name, sql_type) for name, sql_type in HEADER_FIELDS.items())
    + ", updated_at = now() WHERE id = %(id)s RETURNING id"
)


# Locks the header row so concurrent updates of one invoice run one after the
# other. Returns None when the invoice does not exist.
def lock_invoice(conn: Connection, invoice_id: UUID) -> Optional[UUID]:
    with conn.cursor() as cur:
        cur.execute("SELECT id FROM sales_invoices WHERE id = %s FOR UPDATE", (invoice_id,))
        row = cur.fetchone()
        return row[0] if row else None


# Removes every line of the invoice and returns what was removed so the
# stock ledger can put it back.
def delete_items(conn: Connection, invoice_id: UUID) -> List[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            """
            DELETE FROM sales_invoice_items
            WHERE invoice_id = %s
            RETURNING id, product_id, batch_id, quantity
            """,
            (invoice_id,),
        )
        columns = [c[0] for c in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]


# Applies a sparse header patch and stamps updated_at.
# Returns the invoice id, or None if no such invoice exists.
def patch_header(conn: Connection, invoice_id: UUID, patch: InvoiceHeaderPatch) -> Optional[UUID]:
    with conn.cursor() as cur:
        cur.execute(PATCH_HEADER_SQL, {"id": invoice_id, **patch.sql_params()})
        row = cur.fetchone()
        return row[0] if row else None


# Inserts replacement lines, numbering them in the given order.
def insert_items(conn: Connection, invoice_id: UUID, items: Sequence[SalesInvoiceItemIn]) -> None:
    if not items:
        return
    with conn.cursor() as cur:
        cur.executemany(
            """
            INSERT INTO sales_invoice_items
              (invoice_id, line_no, product_id, batch_id, delivery_challan_item_id,
               quantity, unit_price, tax_rate, total_amount, max_quantity)
            VALUES
              (%(invoice_id)s, %(line_no)s, %(product_id)s, %(batch_id)s, %(delivery_challan_item_id)s,
               %(quantity)s, %(unit_price)s, %(tax_rate)s, %(total_amount)s, %(max_quantity)s)
            """,
            [
                {"invoice_id": invoice_id, "line_no": n, **item.model_dump()}
                for n, item in enumerate(items, start=1)
            ],
        )


# Lists sales invoices with pagination, newest invoice date first.
def list_invoices(conn: Connection, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT {HEADER_COLUMNS}
            FROM sales_invoices
            ORDER BY invoice_date DESC, created_at DESC
            LIMIT %s OFFSET %s
            """,
            (limit, offset),
        )
        columns = [col[0] for col in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]


# Fetches a single invoice and its items. Returns None if not found.
def get_invoice_with_items(conn: Connection, invoice_id: UUID) -> Optional[Dict[str, Any]]:
    with conn.cursor() as cur:
        cur.execute(
            f"SELECT {HEADER_COLUMNS} FROM sales_invoices WHERE id = %s",
            (invoice_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        columns = [c[0] for c in cur.description]
        inv = dict(zip(columns, row))

        cur.execute(
            f"""
            SELECT {ITEM_COLUMNS}
            FROM sales_invoice_items WHERE invoice_id = %s ORDER BY line_no
            """,
            (invoice_id,),
        )
        item_cols = [c[0] for c in cur.description]
        inv["items"] = [dict(zip(item_cols, r)) for r in cur.fetchall()]
        return inv
