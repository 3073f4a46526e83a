"""
Tests: field normalizers and the typed metadata record.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from gigorders.services.metadata_normalizer import (
    MISSING,
    OrderMetadata,
    build_metadata_patch,
    normalize_amount,
    normalize_csat,
    normalize_currency,
    normalize_id,
    normalize_tags,
    parse_metadata_bag,
    sanitize_date,
)
from gigorders.utils.exceptions import ValidationError


class TestAmounts:
    def test_rounds_half_up_to_cents(self):
        assert normalize_amount("10.005") == Decimal("10.01")
        assert normalize_amount(3) == Decimal("3.00")

    def test_blank_is_zero(self):
        assert normalize_amount(None) == Decimal("0.00")
        assert normalize_amount("  ") == Decimal("0.00")

    def test_idempotent(self):
        once = normalize_amount("249.999")
        assert normalize_amount(once) == once

    @pytest.mark.parametrize("bad", [-1, "abc", "NaN", "Infinity", True, "1e30", "10000000000"])
    def test_rejects_invalid(self, bad):
        with pytest.raises(ValidationError):
            normalize_amount(bad)


class TestScalars:
    def test_currency_uppercased(self):
        assert normalize_currency(" eur ") == "EUR"
        assert normalize_currency(None) == "USD"

    @pytest.mark.parametrize("bad", ["EURO", "E1R", 978])
    def test_currency_rejects(self, bad):
        with pytest.raises(ValidationError):
            normalize_currency(bad)

    def test_csat_bounds(self):
        assert normalize_csat(4.567) == 4.57
        assert normalize_csat(None) is None
        with pytest.raises(ValidationError):
            normalize_csat(5.01)

    def test_id_must_be_positive(self):
        assert normalize_id("7") == 7
        with pytest.raises(ValidationError):
            normalize_id(0)
        with pytest.raises(ValidationError):
            normalize_id(None, "freelancer_id")


class TestTags:
    def test_comma_string(self):
        assert normalize_tags(" brand, web ,brand,,") == ["brand", "web"]

    def test_object_values(self):
        assert normalize_tags({"a": "seo", "b": "seo", "c": "copy"}) == ["seo", "copy"]

    def test_rejects_other_shapes(self):
        with pytest.raises(ValidationError):
            normalize_tags(42)
        with pytest.raises(ValidationError):
            normalize_tags(["ok", 3])


class TestDates:
    def test_iso_string_becomes_aware_utc(self):
        value = sanitize_date("2024-03-01T10:00:00+02:00")
        assert value == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)

    def test_blank_passes_through(self):
        assert sanitize_date("") is None
        assert sanitize_date(None) is None

    def test_rejects_garbage(self):
        with pytest.raises(ValidationError):
            sanitize_date("not a date at all", "due_at")


class TestMetadataBag:
    def test_undecodable_json_is_empty(self):
        assert parse_metadata_bag("{not json") == {}
        assert parse_metadata_bag("[1, 2]") == {}
        assert parse_metadata_bag('{"tags": ["a"]}') == {"tags": ["a"]}

    def test_absent_vs_null(self):
        meta = OrderMetadata.from_bag({"notes": None})
        assert meta.notes is None
        assert meta.intake_status is MISSING
        assert meta.to_bag() == {"notes": None}

    def test_unknown_keys_survive(self):
        meta = OrderMetadata.from_bag({"crm_id": "x-1", "tags": ["a"]})
        assert meta.extra == {"crm_id": "x-1"}
        assert meta.to_bag() == {"crm_id": "x-1", "tags": ["a"]}

    def test_merge_is_shallow_last_write_wins(self):
        base = OrderMetadata.from_bag({"tags": ["a", "b"], "notes": "keep", "brief": {"x": 1, "y": 2}})
        patch = OrderMetadata(tags=["c"], extra={"brief": {"x": 9}})
        merged = base.merged(patch)
        assert merged.tags == ["c"]
        assert merged.notes == "keep"
        assert merged.extra["brief"] == {"x": 9}

    def test_explicit_null_clears(self):
        base = OrderMetadata.from_bag({"csat_score": 4.5})
        merged = base.merged(OrderMetadata(csat_score=None))
        assert merged.to_bag() == {"csat_score": None}


class TestBuildMetadataPatch:
    def test_only_supplied_keys(self):
        patch = build_metadata_patch({"tags": "a,b", "client_name": "Acme"})
        assert patch.to_bag() == {"tags": ["a", "b"]}

    def test_fallbacks_fill_missing_keys(self):
        patch = build_metadata_patch(
            {}, fallbacks={"escrow_total_amount": Decimal("120.50"), "escrow_currency": "EUR"}
        )
        assert patch.to_bag() == {"escrow_total_amount": 120.5, "escrow_currency": "EUR"}

    def test_enum_validation(self):
        with pytest.raises(ValidationError):
            build_metadata_patch({"intake_status": "nope"}, enums={"intake_status": ("not_started",)})

    def test_passthrough_metadata_cannot_shadow_known_keys(self):
        patch = build_metadata_patch({"metadata": {"pipeline_stage": "completed", "source": "import"}})
        assert patch.pipeline_stage is MISSING
        assert patch.extra == {"source": "import"}

    def test_metadata_must_be_object(self):
        with pytest.raises(ValidationError):
            build_metadata_patch({"metadata": ["x"]})
