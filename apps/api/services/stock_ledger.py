from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union
from uuid import UUID

from psycopg import Connection

from ..errors import ConstraintViolation, ReferentialIntegrityError
from ..models.sales_invoice import SalesInvoiceItemIn

ItemRow = Union[SalesInvoiceItemIn, Mapping[str, Any]]


def _field(item: ItemRow, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name)


def check_available(
    *,
    product_id: Any,
    quantity: Decimal,
    on_hand: Decimal,
    max_quantity: Optional[Decimal] = None,
    batch_id: Any = None,
) -> None:
    """
    Raise ConstraintViolation if `quantity` cannot be taken out of stock.

    Two rules, checked in this order:
    - a line carrying a max_quantity ceiling (e.g. what is still open on the
      delivery challan it was invoiced from) may not exceed it;
    - the on-hand quantity, already including anything restored earlier in
      the same transaction, must cover the line.
    """
    if max_quantity is not None and quantity > max_quantity:
        raise ConstraintViolation(
            f"Quantity {quantity} for product {product_id} exceeds the allowed maximum {max_quantity}."
        )
    if on_hand < quantity:
        where = f"batch {batch_id}" if batch_id is not None else f"product {product_id}"
        raise ConstraintViolation(
            f"Insufficient stock for {where}: {on_hand} on hand, {quantity} requested."
        )


class StockLedger:
    """
    Keeps products.current_stock (and batches.current_stock) in step with
    sales invoice lines.

    Every method runs on the caller's connection and inside the caller's
    transaction; row locks taken here are held until that transaction ends.
    """

    def lock(self, conn: Connection, product_ids: Iterable[UUID]) -> None:
        # Sorted so two updates sharing products always lock in the same order.
        ids = sorted({str(pid) for pid in product_ids if pid is not None})
        if not ids:
            return
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT id
                FROM products
                WHERE id = ANY(%s::uuid[])
                ORDER BY id
                FOR UPDATE
                """,
                (ids,),
            )
            cur.fetchall()

    def restore(self, conn: Connection, item: ItemRow) -> None:
        """Put a removed line's quantity back on the shelf."""
        quantity = Decimal(_field(item, "quantity"))
        batch_id = _field(item, "batch_id")
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE products SET current_stock = current_stock + %s WHERE id = %s",
                (quantity, _field(item, "product_id")),
            )
            if batch_id is not None:
                cur.execute(
                    "UPDATE batches SET current_stock = current_stock + %s WHERE id = %s",
                    (quantity, batch_id),
                )

    def deduct(self, conn: Connection, item: ItemRow) -> None:
        """Take a new line's quantity out of stock, or raise."""
        product_id = _field(item, "product_id")
        batch_id = _field(item, "batch_id")
        quantity = Decimal(_field(item, "quantity"))
        max_quantity = _field(item, "max_quantity")

        with conn.cursor() as cur:
            cur.execute(
                "SELECT current_stock FROM products WHERE id = %s FOR UPDATE",
                (product_id,),
            )
            row = cur.fetchone()
            if row is None:
                raise ReferentialIntegrityError(f"Product {product_id} does not exist.")
            check_available(
                product_id=product_id,
                quantity=quantity,
                on_hand=row[0],
                max_quantity=max_quantity,
            )

            if batch_id is not None:
                cur.execute(
                    "SELECT current_stock FROM batches WHERE id = %s AND product_id = %s FOR UPDATE",
                    (batch_id, product_id),
                )
                batch_row = cur.fetchone()
                if batch_row is None:
                    raise ReferentialIntegrityError(
                        f"Batch {batch_id} does not exist for product {product_id}."
                    )
                check_available(
                    product_id=product_id,
                    batch_id=batch_id,
                    quantity=quantity,
                    on_hand=batch_row[0],
                )
                cur.execute(
                    "UPDATE batches SET current_stock = current_stock - %s WHERE id = %s",
                    (quantity, batch_id),
                )

            cur.execute(
                "UPDATE products SET current_stock = current_stock - %s WHERE id = %s",
                (quantity, product_id),
            )
