"""
Sale records and the price arithmetic shared by the form, the history table,
the receipt and the exported reports.

Records come in two generations. Current sales carry the manually entered
base price, GST and discount plus the two derived totals. Legacy sales were
priced by weight and gold rate and only kept a single ``totalPrice``. The
generation is decided once, in :func:`sale_from_document`, and everything
downstream dispatches on the resulting dataclass.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, NamedTuple, Optional, Tuple, Union
from urllib.parse import quote

CUSTOM_ITEM = "Custom Item"

ITEM_CHOICES = [
    "Gold Ring",
    "Gold Necklace",
    "Gold Chain",
    "Gold Bangles",
    "Gold Earrings",
    "Pendant",
    "Silver Item",
    CUSTOM_ITEM,
]

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

GST_NOT_RECORDED = "N/A (Included in Total)"
DISCOUNT_NOT_RECORDED = "N/A (Not Recorded)"

ZERO = Decimal("0")
CENT = Decimal("0.01")

# largest amount a single price field may hold; base + GST must still fit
# the Numeric(12, 2) columns
MAX_AMOUNT = Decimal("999999999.99")

_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_NUMBER = re.compile(r"\d*(?:\.\d*)?")
_URI_COMPONENT_SAFE = "-_.!~*'()"


# -----------------------
# Records
# -----------------------
@dataclass(frozen=True)
class SaleRecord:
    id: str
    owner_id: Optional[int]
    customer_name: str
    customer_phone: str
    item_name: str
    huid: str
    notes: str
    timestamp: datetime


@dataclass(frozen=True)
class CurrentSale(SaleRecord):
    item_base_price: Decimal
    gst_amount: Decimal
    discount_amount: Decimal
    total_price_before_discount: Decimal
    final_price: Optional[Decimal] = None
    # only set on documents written before finalPrice was stored
    total_price: Optional[Decimal] = None


@dataclass(frozen=True)
class LegacySale(SaleRecord):
    weight: Optional[Decimal] = None
    gold_rate: Optional[Decimal] = None
    making_charges: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    # a few old documents already carried finalPrice without itemBasePrice
    final_price: Optional[Decimal] = None


Sale = Union[CurrentSale, LegacySale]


class Totals(NamedTuple):
    total_price_before_discount: Decimal
    final_price: Decimal


class PriceBreakdown(NamedTuple):
    base_price: str
    gst_display: str
    discount_display: str
    total_before_discount_display: str


# -----------------------
# Parsing helpers
# -----------------------
def _is_number(value) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _decimal(value) -> Optional[Decimal]:
    if not _is_number(value):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _text(value) -> str:
    return "" if value is None else str(value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value) -> datetime:
    """Normalise whatever the store handed us to a naive UTC datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, dict):
        # exported server timestamps: {"seconds": ..., "nanoseconds": ...}
        value = value.get("seconds", value.get("_seconds"))

    if _is_number(value):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return utcnow()

    if isinstance(value, str) and value.strip():
        try:
            return parse_timestamp(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            return utcnow()

    return utcnow()


def parse_amount(value) -> Decimal:
    """
    Coerce user text to a non-negative Decimal.

    Everything except digits and dots is dropped, then the leading number is
    read: "₹1,00,000" -> 100000, "1.2.3" -> 1.2, "" -> 0.
    """
    if _is_number(value):
        number = _decimal(value)
        return abs(number) if number is not None and number.is_finite() else ZERO

    cleaned = _NON_NUMERIC.sub("", _text(value))
    match = _LEADING_NUMBER.match(cleaned)
    text = match.group(0) if match else ""
    if not text.strip("."):
        return ZERO
    return Decimal(text)


def to_paise(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


# -----------------------
# Sale entry
# -----------------------
def compute_totals(base_price, gst_amount, discount_amount) -> Totals:
    base = parse_amount(base_price)
    gst = parse_amount(gst_amount)
    discount = parse_amount(discount_amount)

    total = base + gst
    # not clamped: a discount above the total gives a negative final price
    return Totals(total_price_before_discount=total, final_price=total - discount)


def resolve_item_name(selection, custom_text) -> str:
    if selection == CUSTOM_ITEM:
        return _text(custom_text).strip() or CUSTOM_ITEM
    return selection


def validate_sale_input(data) -> Optional[str]:
    """Return the rejection reason, or None when the sale can be saved."""
    if not _text(data.get("customer_name")).strip():
        return "Please fill in the Customer Name."

    if parse_amount(data.get("item_base_price")) == ZERO:
        return "Please fill in the Item Base Price."

    if data.get("item_selection") == CUSTOM_ITEM and not _text(data.get("custom_item_name")).strip():
        return "Please enter a name for the Custom Item."

    return None


def build_sale_fields(data) -> dict:
    """Store payload for an accepted sale. Derived totals are always recomputed here."""
    # round to paise first so the stored totals add up exactly
    base = to_paise(parse_amount(data.get("item_base_price")))
    gst = to_paise(parse_amount(data.get("gst_amount")))
    discount = to_paise(parse_amount(data.get("discount_amount")))
    totals = compute_totals(base, gst, discount)

    return {
        "customer_name": _text(data.get("customer_name")).strip(),
        "customer_phone": _text(data.get("customer_phone")).strip(),
        "item_name": resolve_item_name(data.get("item_selection"), data.get("custom_item_name")),
        "huid": _text(data.get("huid")).strip(),
        "notes": _text(data.get("notes")).strip(),
        "item_base_price": base,
        "gst_amount": gst,
        "discount_amount": discount,
        "total_price_before_discount": totals.total_price_before_discount,
        "final_price": totals.final_price,
    }


# -----------------------
# Store boundary
# -----------------------
def is_legacy_document(doc) -> bool:
    return not _is_number(doc.get("itemBasePrice"))


def sale_from_document(doc) -> Sale:
    common = dict(
        id=_text(doc.get("id")),
        owner_id=doc.get("userId"),
        customer_name=_text(doc.get("customerName")),
        customer_phone=_text(doc.get("customerPhone")),
        item_name=_text(doc.get("itemName")),
        huid=_text(doc.get("huid")),
        notes=_text(doc.get("notes")),
        timestamp=parse_timestamp(doc.get("timestamp")),
    )

    if is_legacy_document(doc):
        return LegacySale(
            weight=_decimal(doc.get("weight")),
            gold_rate=_decimal(doc.get("goldRate")),
            making_charges=_decimal(doc.get("makingCharges")),
            total_price=_decimal(doc.get("totalPrice")),
            final_price=_decimal(doc.get("finalPrice")),
            **common
        )

    return CurrentSale(
        item_base_price=_decimal(doc["itemBasePrice"]),
        gst_amount=_decimal(doc.get("gstAmount")) or ZERO,
        discount_amount=_decimal(doc.get("discountAmount")) or ZERO,
        total_price_before_discount=_decimal(doc.get("totalPriceBeforeDiscount")) or ZERO,
        final_price=_decimal(doc.get("finalPrice")),
        total_price=_decimal(doc.get("totalPrice")),
        **common
    )


# -----------------------
# Display
# -----------------------
def format_inr(amount) -> str:
    """₹ with Indian digit grouping: 103000 -> ₹1,03,000, 1234.5 -> ₹1,234.5"""
    value = _decimal(amount)
    if value is None or not value.is_finite():
        value = ZERO
    # quantizing needs the whole number plus two decimals to fit in 28 digits
    if value.adjusted() <= 25:
        value = to_paise(value)

    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):f}".partition(".")
    fraction = fraction.rstrip("0")

    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])

    return f"₹{sign}{whole}.{fraction}" if fraction else f"₹{sign}{whole}"


def display_price(record: Sale) -> Decimal:
    """finalPrice, else totalPrice, else 0, whatever the generation."""
    if record.final_price is not None:
        return record.final_price
    if record.total_price is not None:
        return record.total_price
    return ZERO


def base_price(record: Sale) -> Decimal:
    if isinstance(record, CurrentSale):
        return record.item_base_price
    return (record.weight or ZERO) * (record.gold_rate or ZERO)


def display_breakdown(record: Sale) -> PriceBreakdown:
    if isinstance(record, CurrentSale):
        return PriceBreakdown(
            base_price=format_inr(record.item_base_price),
            gst_display=format_inr(record.gst_amount),
            discount_display=format_inr(record.discount_amount),
            total_before_discount_display=format_inr(record.total_price_before_discount),
        )

    # the weight/rate era never captured GST or discount separately
    return PriceBreakdown(
        base_price=format_inr(base_price(record)),
        gst_display=GST_NOT_RECORDED,
        discount_display=DISCOUNT_NOT_RECORDED,
        total_before_discount_display=format_inr(record.total_price or ZERO),
    )


def receipt_reference(record: Sale) -> str:
    return record.id[:8].upper()


def receipt_text(record: Sale) -> str:
    return (
        f"Receipt for {record.customer_name}\n"
        f"Item: {record.item_name}\n"
        f"Final Price: {format_inr(display_price(record))}"
    )


def whatsapp_link(record: Sale) -> Optional[str]:
    digits = re.sub(r"\D", "", record.customer_phone)
    if not digits:
        return None
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]

    message = (
        f"Hello {record.customer_name}, here is your invoice for {record.item_name}. "
        f"Total Amount: {format_inr(display_price(record))}. "
        "Please find the PDF attached below."
    )
    return f"https://wa.me/91{digits}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"


# -----------------------
# Snapshots and filtering
# -----------------------
def sort_snapshot(records: Iterable[Sale]) -> Tuple[Sale, ...]:
    return tuple(sorted(records, key=lambda r: r.timestamp, reverse=True))


def search_sales(records: Iterable[Sale], term) -> List[Sale]:
    records = list(records)
    term = _text(term).strip()
    if not term:
        return records

    lower = term.lower()
    return [
        r for r in records
        if lower in r.customer_name.lower()
        or lower in r.customer_phone
        or (r.huid and lower in r.huid.lower())
    ]


def to_local(timestamp: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Stored naive UTC -> naive wall-clock time in ``tz`` (UTC when None)."""
    if tz is None:
        return timestamp
    return timestamp.replace(tzinfo=timezone.utc).astimezone(tz).replace(tzinfo=None)


def sales_in_month(records: Iterable[Sale], year: int, month: int,
                   tz: Optional[tzinfo] = None) -> List[Sale]:
    selected = []
    for r in records:
        local = to_local(r.timestamp, tz)
        if local.year == year and local.month == month:
            selected.append(r)
    return selected


def sales_between(records: Iterable[Sale], start: Optional[date], end: Optional[date],
                  tz: Optional[tzinfo] = None) -> List[Sale]:
    selected = []
    for r in records:
        day = to_local(r.timestamp, tz).date()
        if start and day < start:
            continue
        if end and day > end:
            continue
        selected.append(r)
    return selected


def period_range(period, today: date, start: Optional[date] = None,
                 end: Optional[date] = None) -> Tuple[Optional[date], Optional[date]]:
    if period == "today":
        return today, today
    if period == "yesterday":
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday
    if period == "week":
        return today - timedelta(days=6), today
    if period == "month":
        return today - timedelta(days=29), today
    if period == "custom":
        return start, end
    return None, None


def available_years(records: Iterable[Sale], current_year: int,
                    tz: Optional[tzinfo] = None) -> List[int]:
    years = {to_local(r.timestamp, tz).year for r in records}
    years.add(current_year)
    return sorted(years, reverse=True)


def total_of(records: Iterable[Sale]) -> Decimal:
    return sum((display_price(r) for r in records), ZERO)
