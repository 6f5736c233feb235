from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Iterable, List, Literal, Mapping, Optional, Set, Union
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ..errors import TypeCoercionError

# Header columns the update may touch, with the SQL type each patch value is
# cast to. Order is the order of the SET list.
HEADER_FIELDS = {
    "invoice_date": "date",
    "due_date": "date",
    "customer_id": "uuid",
    "subtotal": "numeric",
    "tax_amount": "numeric",
    "total_amount": "numeric",
    "discount_amount": "numeric",
    "po_number": "text",
    "payment_terms_days": "integer",
    "notes": "text",
    "payment_terms": "text",
}

# Bounds match the NUMERIC columns, so what is stored is exactly what the
# stock ledger adds or subtracts.
Decimal4 = Annotated[Decimal, Field(max_digits=18, decimal_places=4)]
Money = Annotated[Decimal, Field(max_digits=18, decimal_places=2)]
Rate = Annotated[Decimal, Field(max_digits=7, decimal_places=4)]

ClearableField = Literal["due_date", "po_number", "payment_terms", "payment_terms_days", "notes"]


def _blank_to_none(v: Any) -> Any:
    if v == "":
        return None
    return v


class InvoiceHeaderPatch(BaseModel):
    """Sparse update of a sales invoice header.

    A member left as None (or sent as "") keeps the stored value. Nullable
    columns can be emptied by naming them in `clear`.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    customer_id: Optional[UUID] = Field(
        None,
        validation_alias=AliasChoices("customer_id", "customer_or_supplier_id"),
    )
    subtotal: Optional[Money] = None
    tax_amount: Optional[Money] = None
    total_amount: Optional[Money] = None
    discount_amount: Optional[Money] = None
    po_number: Optional[str] = None
    payment_terms_days: Optional[int] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    clear: Set[ClearableField] = Field(default_factory=set)

    @field_validator(*HEADER_FIELDS, mode="before")
    @classmethod
    def _empty_means_unchanged(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def _no_set_and_clear(self):
        both = sorted(f for f in self.clear if getattr(self, f) is not None)
        if both:
            raise ValueError(f"fields both set and cleared: {', '.join(both)}")
        return self

    def sql_params(self) -> dict:
        """Flatten into named parameters for repos.sales_invoices.patch_header."""
        params = {name: getattr(self, name) for name in HEADER_FIELDS}
        for name in HEADER_FIELDS:
            params[f"clear_{name}"] = name in self.clear
        return params


class SalesInvoiceItemIn(BaseModel):
    """One replacement line. Always fully specified."""

    model_config = ConfigDict(extra="ignore")

    product_id: UUID
    batch_id: Optional[UUID] = None
    delivery_challan_item_id: Optional[UUID] = None
    quantity: Decimal4
    unit_price: Decimal4
    tax_rate: Rate = Decimal("0")
    total_amount: Decimal4
    max_quantity: Optional[Decimal4] = None

    # an unlinked line arrives from the form as ""
    @field_validator("batch_id", "delivery_challan_item_id", "max_quantity", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)


class SalesInvoiceUpdate(BaseModel):
    invoice: InvoiceHeaderPatch = Field(default_factory=InvoiceHeaderPatch)
    items: List[SalesInvoiceItemIn] = Field(default_factory=list)


HeaderPatchLike = Union[InvoiceHeaderPatch, Mapping[str, Any], None]
ItemLike = Union[SalesInvoiceItemIn, Mapping[str, Any]]


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def coerce_header_patch(raw: HeaderPatchLike) -> InvoiceHeaderPatch:
    if raw is None:
        return InvoiceHeaderPatch()
    if isinstance(raw, InvoiceHeaderPatch):
        return raw
    try:
        return InvoiceHeaderPatch.model_validate(dict(raw))
    except ValidationError as e:
        raise TypeCoercionError(f"Invalid invoice header patch: {_describe(e)}") from e


def coerce_items(raw: Iterable[ItemLike]) -> List[SalesInvoiceItemIn]:
    items: List[SalesInvoiceItemIn] = []
    for idx, item in enumerate(raw):
        if isinstance(item, SalesInvoiceItemIn):
            items.append(item)
            continue
        try:
            items.append(SalesInvoiceItemIn.model_validate(dict(item)))
        except ValidationError as e:
            raise TypeCoercionError(f"Invalid item at position {idx}: {_describe(e)}") from e
    return items
