"""Tests for timespine.core.schema module."""

import pytest

from timespine.core.errors import IncompleteIdentifierError, UnknownEnumLabelError
from timespine.core.schema import SchemaDescriptor, is_blank


@pytest.fixture
def schema() -> SchemaDescriptor:
    return SchemaDescriptor(
        identifier_fields=["wrapper_id", "reporting_currency"],
        enums={"status": {"recorded": 0, "stale": 1, "fresh": 2}},
    )


class TestIsBlank:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", [0, "x", False])
    def test_not_blank(self, value):
        assert not is_blank(value)


class TestIdentifiers:
    def test_identifier_fields_normalised_to_tuple(self, schema):
        assert schema.identifier_fields == ("wrapper_id", "reporting_currency")

    def test_split(self, schema):
        ids, rest = schema.split(
            {"wrapper_id": 1, "reporting_currency": "USD", "amount": 10}
        )
        assert ids == {"wrapper_id": 1, "reporting_currency": "USD"}
        assert rest == {"amount": 10}

    def test_missing_identifiers(self, schema):
        assert schema.missing_identifiers({"wrapper_id": 1}) == ["reporting_currency"]
        assert schema.missing_identifiers({"wrapper_id": 1, "reporting_currency": ""}) == [
            "reporting_currency"
        ]

    def test_require_identifiers_raises(self, schema):
        with pytest.raises(IncompleteIdentifierError, match="can't be empty") as exc:
            schema.require_identifiers({"wrapper_id": None, "reporting_currency": "USD"})
        assert exc.value.field == "wrapper_id"

    def test_require_identifiers_ok(self, schema):
        schema.require_identifiers({"wrapper_id": 1, "reporting_currency": "USD"})


class TestEnums:
    def test_encode_label(self, schema):
        assert schema.encode({"status": "stale", "amount": 1}) == {"status": 1, "amount": 1}

    def test_encode_code_passthrough(self, schema):
        assert schema.encode({"status": 2}) == {"status": 2}

    def test_encode_blank_left_alone(self, schema):
        assert schema.encode({"status": None}) == {"status": None}

    def test_encode_unknown_label(self, schema):
        with pytest.raises(UnknownEnumLabelError) as exc:
            schema.encode({"status": "rotten"})
        assert exc.value.field == "status"

    def test_decode(self, schema):
        assert schema.decode({"status": 0, "amount": 3}) == {"status": "recorded", "amount": 3}

    def test_encode_does_not_mutate_input(self, schema):
        attrs = {"status": "fresh"}
        schema.encode(attrs)
        assert attrs == {"status": "fresh"}
