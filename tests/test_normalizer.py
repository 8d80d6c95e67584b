"""Test suite for row normalization: typed fields, temporary ids, legacy weight."""

import math

import pytest

from bomtree.normalizer import (
    RowNormalizer,
    TempIdGenerator,
    TEMP_ID_PREFIX,
    is_temp_id,
    to_number,
    to_text,
)
from bomtree.schema import QuantityUnit


# =============================================================================
# CELL COERCION
# =============================================================================

@pytest.mark.parametrize("value, expected", [
    (3, 3.0),
    (2.5, 2.5),
    ("4", 4.0),
    (" 1,234.5 ", 1234.5),
    ("-0.25", -0.25),
])
def test_to_number_parses(value, expected):
    assert to_number(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "abc", "1.2.3", "1_000", True, float("nan"), float("inf"), "inf"])
def test_to_number_unparseable_is_none(value):
    assert to_number(value) is None


def test_to_text():
    assert to_text("  Frame ") == "Frame"
    assert to_text(1.0) == "1"
    assert to_text(1.5) == "1.5"
    assert to_text(12) == "12"
    assert to_text("   ") is None
    assert to_text(None) is None


# =============================================================================
# TEMPORARY IDS
# =============================================================================

def test_temp_ids_are_prefixed_and_unique():
    new_id = TempIdGenerator()
    ids = [new_id() for _ in range(500)]

    assert len(set(ids)) == len(ids)
    assert all(tmp_id.startswith(TEMP_ID_PREFIX) for tmp_id in ids)
    assert all(len(tmp_id) == len(TEMP_ID_PREFIX) + 8 for tmp_id in ids)


def test_short_temp_ids_redraw_on_collision():
    """With 36 possible one-character suffixes, 36 draws must still be unique."""
    new_id = TempIdGenerator(length=1)
    ids = {new_id() for _ in range(36)}
    assert len(ids) == 36


def test_is_temp_id():
    assert is_temp_id("tmp_abc12345")
    assert not is_temp_id("6f1c2a4e-0000-4000-8000-000000000000")
    assert not is_temp_id(None)


# =============================================================================
# ROW NORMALIZATION
# =============================================================================

class TestRowNormalizer:
    """Tests for RowNormalizer.normalize / normalize_record."""

    def test_fields_are_typed(self):
        rows = RowNormalizer().normalize([{
            "line_no": 1.0,
            "parent_line_no": None,
            "part_no": " FR-100 ",
            "name": "Frame",
            "material": "AL6061",
            "qty": "2",
            "qty_uom": "pcs",
            "mass_per_ea_kg": "1,5",
        }], treetable_id="tt-1")

        row = rows[0]
        assert row.line_no == "1"
        assert row.parent_line_no is None
        assert row.part_no == "FR-100"
        assert row.qty == 2.0
        assert row.qty_uom == QuantityUnit.EACH
        assert row.mass_per_ea_kg == 15.0  # comma is a thousands separator
        assert row.treetable_id == "tt-1"
        assert is_temp_id(row.tmp_id)

    def test_unknown_unit_is_none(self):
        row = RowNormalizer().normalize([{"line_no": "1", "qty": 3, "qty_uom": "m"}])[0]
        assert row.qty == 3.0
        assert row.qty_uom is None

    def test_unparseable_numbers_are_none_not_zero(self):
        row = RowNormalizer().normalize([{"line_no": "1", "qty": "n/a", "mass_per_ea_kg": ""}])[0]
        assert row.qty is None
        assert row.mass_per_ea_kg is None

    def test_legacy_weight_fallback(self):
        """A row with only a weight reads as one unit of that mass."""
        row = RowNormalizer().normalize([{"line_no": "1", "name": "Frame", "weight": "2.75"}])[0]

        assert row.qty == 1.0
        assert row.qty_uom == QuantityUnit.EACH
        assert row.mass_per_ea_kg == 2.75
        assert row.weight == 2.75
        assert math.isclose(row.total_mass_kg, 2.75)

    def test_gram_per_each_is_stored_in_kg(self):
        row = RowNormalizer().normalize([{"line_no": "1", "qty": 4, "qty_uom": "ea", "mass_per_ea_g": "250"}])[0]

        assert math.isclose(row.mass_per_ea_kg, 0.25)
        assert math.isclose(row.total_mass_kg, 1.0)

    def test_kg_column_wins_over_gram_column(self):
        row = RowNormalizer().normalize([{
            "line_no": "1", "qty": 1, "mass_per_ea_kg": 2.0, "mass_per_ea_g": 500
        }])[0]
        assert row.mass_per_ea_kg == 2.0

    def test_weight_does_not_override_quantity_columns(self):
        row = RowNormalizer().normalize([{
            "line_no": "1", "qty": 2, "qty_uom": "ea", "mass_per_ea_kg": 0.5, "weight": 9.0
        }])[0]

        assert row.qty == 2.0
        assert row.mass_per_ea_kg == 0.5
        assert row.total_mass_kg == 1.0

    def test_each_call_uses_fresh_ids(self):
        normalizer = RowNormalizer()
        records = [{"line_no": str(i)} for i in range(1, 20)]

        first = normalizer.normalize(records)
        second = normalizer.normalize(records)

        assert len({row.tmp_id for row in first}) == len(records)
        assert [row.line_no for row in first] == [row.line_no for row in second]

    def test_custom_id_factory(self):
        counter = iter(range(100))
        rows = RowNormalizer().normalize(
            [{"line_no": "1"}, {"line_no": "2"}],
            new_id=lambda: f"tmp_{next(counter)}"
        )
        assert [row.tmp_id for row in rows] == ["tmp_0", "tmp_1"]
