"""
Unit tests for GST computation.
"""
from decimal import Decimal

import pytest

from models.receipt import DraftLine, ReceiptLine
from receiving.tax import TaxRules, compute_totals


def _lines(*pairs):
    return [
        ReceiptLine(name=f"Item {i}", quantity_received=Decimal(q), rate=Decimal(r))
        for i, (q, r) in enumerate(pairs)
    ]


@pytest.mark.unit
class TestTaxRules:
    """Tests for the intra/inter-state decision."""

    def test_home_state_prefix_is_intra(self):
        rules = TaxRules()
        assert rules.is_intra_state("24ABCDE1234F1Z5")
        assert rules.gst_type("24ABCDE1234F1Z5") == "intra"

    def test_other_state_is_inter(self):
        assert TaxRules().gst_type("27AAACG1234K1Z2") == "inter"

    def test_missing_gstin_is_inter(self):
        assert TaxRules().gst_type(None) == "inter"
        assert TaxRules().gst_type("") == "inter"

    def test_whitespace_around_gstin_ignored(self):
        assert TaxRules().is_intra_state("  24ABCDE1234F1Z5")

    def test_prefix_is_configurable(self):
        rules = TaxRules(intra_state_prefix="27")
        assert rules.is_intra_state("27AAACG1234K1Z2")
        assert not rules.is_intra_state("24ABCDE1234F1Z5")

    def test_from_config(self, test_config):
        test_config.intra_state_prefix = "29"
        test_config.igst_rate = Decimal("0.12")
        rules = TaxRules.from_config(test_config)
        assert rules.intra_state_prefix == "29"
        assert rules.igst_rate == Decimal("0.12")


@pytest.mark.unit
class TestComputeTotals:
    """Tests for compute_totals function."""

    def test_intra_state_split(self):
        totals = compute_totals(_lines(("10", "100")), vendor_tax_id="24ABCDE1234F1Z5")
        assert totals.subtotal == Decimal("1000")
        assert totals.cgst == Decimal("90.00")
        assert totals.sgst == Decimal("90.00")
        assert totals.igst == Decimal("0")
        assert totals.total == Decimal("1180.00")
        assert totals.gst_type == "intra"

    def test_inter_state_igst(self):
        totals = compute_totals(_lines(("10", "100")), vendor_tax_id="27AAACG1234K1Z2")
        assert totals.cgst == Decimal("0")
        assert totals.sgst == Decimal("0")
        assert totals.igst == Decimal("180.00")
        assert totals.total == Decimal("1180.00")
        assert totals.gst_type == "inter"

    def test_each_tax_rounded_half_up(self):
        """subtotal 370.39 → 9% = 33.3351 → 33.34 each."""
        totals = compute_totals(_lines(("1", "370.39")), vendor_tax_id="24X")
        assert totals.cgst == Decimal("33.34")
        assert totals.sgst == Decimal("33.34")
        assert totals.total == Decimal("437.07")

    def test_subtotal_not_rounded(self):
        totals = compute_totals(_lines(("3", "3.333")), vendor_tax_id="27X")
        assert totals.subtotal == Decimal("9.999")
        assert totals.igst == Decimal("1.80")
        assert totals.total == Decimal("11.80")

    def test_other_charges_added_after_tax(self):
        totals = compute_totals(_lines(("10", "100")), other_charges="50", vendor_tax_id="24X")
        assert totals.other_charges == Decimal("50")
        assert totals.total == Decimal("1230.00")

    def test_non_numeric_other_charges_count_as_zero(self):
        totals = compute_totals(_lines(("10", "100")), other_charges="n/a", vendor_tax_id="24X")
        assert totals.other_charges == Decimal("0")
        assert totals.total == Decimal("1180.00")

    def test_huge_rate_priced_exactly(self):
        lines = [DraftLine(name="Bolt", quantity_received="2", rate="1e30")]
        totals = compute_totals(lines, vendor_tax_id="27X")
        assert totals.subtotal == Decimal("2e30")
        assert totals.igst == Decimal("3.6e29")
        assert totals.total == Decimal("2.36e30")

    def test_huge_quantity_priced_exactly(self):
        lines = [DraftLine(name="Bolt", quantity_received="123456789012345678901234567890", rate="1")]
        totals = compute_totals(lines, vendor_tax_id="24X")
        assert totals.cgst == Decimal("11111111011111111101111111110.10")
        assert totals.total == Decimal("145679011034567901103456790110.20")

    def test_huge_other_charges_keep_the_cents(self):
        totals = compute_totals(_lines(("10", "100")), other_charges="1e30", vendor_tax_id="24X")
        assert totals.total == Decimal("1000000000000000000000000001180.00")

    def test_out_of_range_other_charges_count_as_zero(self):
        totals = compute_totals(_lines(("10", "100")), other_charges="1e100", vendor_tax_id="24X")
        assert totals.other_charges == Decimal("0")
        assert totals.total == Decimal("1180.00")

    def test_draft_lines_with_bad_input_count_as_zero(self):
        lines = [
            DraftLine(name="Bolt", quantity_received="abc", rate="10"),
            DraftLine(name="Washer", quantity_received="4", rate="2.5"),
        ]
        totals = compute_totals(lines, vendor_tax_id="27X")
        assert totals.subtotal == Decimal("10.0")
        assert totals.igst == Decimal("1.80")

    def test_sample_gstins(self):
        intra = compute_totals(_lines(("1", "1000")), vendor_tax_id="24AAAFF2996A1Z5")
        inter = compute_totals(_lines(("1", "1000")), vendor_tax_id="19AAAFF2996A1Z5")
        assert (intra.cgst, intra.sgst, intra.igst, intra.total) == (
            Decimal("90.00"), Decimal("90.00"), Decimal("0"), Decimal("1180.00"),
        )
        assert (inter.cgst, inter.igst, inter.total) == (Decimal("0"), Decimal("180.00"), Decimal("1180.00"))

    def test_small_subtotal_rounds_each_tax(self):
        totals = compute_totals(_lines(("1", "33.335")), vendor_tax_id="24AAAFF2996A1Z5")
        assert totals.cgst == Decimal("3.00")
        assert totals.sgst == Decimal("3.00")
        assert totals.total == Decimal("39.34")

    def test_no_lines(self):
        totals = compute_totals([], vendor_tax_id="24X")
        assert totals.subtotal == Decimal("0")
        assert totals.total == Decimal("0.00")

    def test_custom_rates(self):
        rules = TaxRules(cgst_rate=Decimal("0.06"), sgst_rate=Decimal("0.06"))
        totals = compute_totals(_lines(("1", "100")), vendor_tax_id="24X", rules=rules)
        assert totals.cgst == Decimal("6.00")
        assert totals.total == Decimal("112.00")
