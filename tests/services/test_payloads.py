"""Tests for receive / fulfill payload parsing."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import FulfillmentLine, ReceiptLine
from inventory_kernel.exceptions import InvalidRequestError
from inventory_services.payloads import parse_datetime, parse_fulfillment, parse_receipt


class TestParseReceipt:

    def test_lines_and_notes(self):
        item, location = uuid4(), uuid4()
        request = parse_receipt({
            "items": [{"item_id": str(item), "quantity_received": 6, "location_id": str(location)}],
            "notes": "dock 2",
        })
        assert request.lines == (ReceiptLine(item, 6, location),)
        assert request.notes == "dock 2"

    def test_location_optional(self):
        item = uuid4()
        request = parse_receipt({"items": [{"item_id": item, "quantity_received": 3}]})
        assert request.lines[0].location_id is None
        assert request.lines[0].quantity == 3

    def test_empty_notes_dropped(self):
        request = parse_receipt({"items": [{"item_id": uuid4(), "quantity_received": 1}], "notes": ""})
        assert request.notes is None

    def test_non_positive_quantity_passes_through(self):
        request = parse_receipt({"items": [{"item_id": uuid4(), "quantity_received": 0}]})
        assert request.lines[0].quantity == 0

    @pytest.mark.parametrize("payload, field", [
        ([], "body"),
        ({}, "items"),
        ({"items": []}, "items"),
        ({"items": ["x"]}, "items[0]"),
        ({"items": [{"quantity_received": 1}]}, "items[0].item_id"),
        ({"items": [{"item_id": "not-a-uuid", "quantity_received": 1}]}, "items[0].item_id"),
        ({"items": [{"item_id": str(uuid4())}]}, "items[0].quantity_received"),
        ({"items": [{"item_id": str(uuid4()), "quantity_received": 1.5}]}, "items[0].quantity_received"),
        ({"items": [{"item_id": str(uuid4()), "quantity_received": 6.0}]}, "items[0].quantity_received"),
        ({"items": [{"item_id": str(uuid4()), "quantity_received": "3"}]}, "items[0].quantity_received"),
        ({"items": [{"item_id": str(uuid4()), "quantity_received": "-3"}]}, "items[0].quantity_received"),
        ({"items": [{"item_id": str(uuid4()), "quantity_received": True}]}, "items[0].quantity_received"),
        ({"items": [{"item_id": str(uuid4()), "quantity_received": 1}], "notes": 5}, "notes"),
    ])
    def test_malformed(self, payload, field):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_receipt(payload)
        assert exc_info.value.field == field

    def test_error_names_line_position(self):
        good = {"item_id": str(uuid4()), "quantity_received": 1}
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_receipt({"items": [good, {"item_id": str(uuid4()), "quantity_received": "many"}]})
        assert exc_info.value.field == "items[1].quantity_received"


class TestParseFulfillment:

    def test_quantity_key(self):
        item = uuid4()
        request = parse_fulfillment({"items": [{"item_id": str(item), "quantity_fulfilled": 2}]})
        assert request.lines == (FulfillmentLine(item, 2),)
        assert request.shipping_date is None

    def test_receipt_key_rejected(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_fulfillment({"items": [{"item_id": str(uuid4()), "quantity_received": 2}]})
        assert exc_info.value.field == "items[0].quantity_fulfilled"

    def test_shipping_date(self):
        request = parse_fulfillment({
            "items": [{"item_id": str(uuid4()), "quantity_fulfilled": 1}],
            "shipping_date": "2024-01-02T10:00:00Z",
        })
        assert request.shipping_date == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


class TestParseDatetime:

    def test_naive_taken_as_utc(self):
        assert parse_datetime("2024-05-01T08:00:00", "d").tzinfo == timezone.utc

    def test_datetime_passthrough(self):
        value = datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert parse_datetime(value, "d") is value

    @pytest.mark.parametrize("value", ["yesterday", 20240501])
    def test_invalid(self, value):
        with pytest.raises(InvalidRequestError) as exc_info:
            parse_datetime(value, "shipping_date")
        assert exc_info.value.field == "shipping_date"
