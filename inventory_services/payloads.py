"""
Request payload parsing for the receive / fulfill API boundary.

Payload shape (JSON body):

    {
        "items": [
            {"item_id": "<uuid>", "quantity_received": 6, "location_id": "<uuid>"},
            ...
        ],
        "notes": "optional free text",
        "shipping_date": "2024-01-02T10:00:00+00:00"     # fulfillment only
    }

Fulfillment lines use ``quantity_fulfilled``.  Quantities must be JSON
integers; floats and numeric strings are rejected.  Anything malformed raises
InvalidRequestError naming the offending field; business rules (positive
quantity, remaining quantity, item membership) are left to the state
machines so they can report item_id and line_index.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import UUID

from inventory_kernel.domain.dtos import FulfillmentLine, ReceiptLine
from inventory_kernel.exceptions import InvalidRequestError


@dataclass(frozen=True)
class ReceiptRequest:
    lines: tuple[ReceiptLine, ...]
    notes: str | None = None


@dataclass(frozen=True)
class FulfillmentRequest:
    lines: tuple[FulfillmentLine, ...]
    notes: str | None = None
    shipping_date: datetime | None = None


def _uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidRequestError(field, f"not a valid id: {value!r}") from None


def _quantity(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidRequestError(field, "must be an integer")
    if isinstance(value, int):
        return value
    raise InvalidRequestError(field, f"must be an integer, got {value!r}")


def _notes(payload: Mapping[str, Any]) -> str | None:
    notes = payload.get("notes")
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise InvalidRequestError("notes", "must be a string")
    return notes or None


def _items(payload: Any) -> list:
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("body", "must be a JSON object")
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidRequestError("items", "must be a non-empty list")
    return items


def _line_fields(raw: Any, index: int, quantity_key: str) -> tuple[UUID, int, UUID | None]:
    prefix = f"items[{index}]"
    if not isinstance(raw, Mapping):
        raise InvalidRequestError(prefix, "must be an object")
    if "item_id" not in raw:
        raise InvalidRequestError(f"{prefix}.item_id", "is required")
    if quantity_key not in raw:
        raise InvalidRequestError(f"{prefix}.{quantity_key}", "is required")
    item_id = _uuid(raw["item_id"], f"{prefix}.item_id")
    quantity = _quantity(raw[quantity_key], f"{prefix}.{quantity_key}")
    location = raw.get("location_id")
    location_id = _uuid(location, f"{prefix}.location_id") if location else None
    return item_id, quantity, location_id


def parse_datetime(value: Any, field: str) -> datetime:
    """ISO-8601 string or datetime; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidRequestError(field, f"not an ISO-8601 datetime: {value!r}") from None
    else:
        raise InvalidRequestError(field, f"not a datetime: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_receipt(payload: Any) -> ReceiptRequest:
    lines = tuple(
        ReceiptLine(*_line_fields(raw, index, "quantity_received"))
        for index, raw in enumerate(_items(payload))
    )
    return ReceiptRequest(lines=lines, notes=_notes(payload))


def parse_fulfillment(payload: Any) -> FulfillmentRequest:
    lines = tuple(
        FulfillmentLine(*_line_fields(raw, index, "quantity_fulfilled"))
        for index, raw in enumerate(_items(payload))
    )
    shipping = payload.get("shipping_date")
    return FulfillmentRequest(
        lines=lines,
        notes=_notes(payload),
        shipping_date=parse_datetime(shipping, "shipping_date") if shipping else None,
    )
