"""
Unit tests for export service functionality.
"""
import csv
from decimal import Decimal

import openpyxl
import pytest

from dashboard.services.export import (
    REGISTER_HEADERS,
    build_register_rows,
    render_receipt_xml,
    write_register_csv,
    write_register_xlsx,
)
from models.receipt import ReceiptDocument, ReceiptLine
from receiving.tax import TaxRules


@pytest.fixture
def intra_receipt():
    return ReceiptDocument(
        document_number="GRN-0001",
        po_number="PO-2024-001",
        receipt_date="2024-02-01",
        po_date="2024-01-15",
        transporter="VRL Logistics",
        vehicle_number="GJ01AB1234",
        vendor_name="Acme Fasteners Pvt Ltd",
        vendor_tax_id="24ABCDE1234F1Z5",
        lines=[
            ReceiptLine(name="Bolt", quantity_received=Decimal("3"), rate=Decimal("3.333"), hsn_code="7318"),
        ],
        subtotal=Decimal("9.999"),
        cgst=Decimal("0.90"),
        sgst=Decimal("0.90"),
        total=Decimal("11.80"),
    )


@pytest.fixture
def inter_receipt():
    return ReceiptDocument(
        document_number="GRN-0002",
        po_number="PO-2024-002",
        receipt_date="2024-02-03",
        vendor_name="A & B Steel <Mumbai>",
        vendor_tax_id="27AAACG1234K1Z2",
        lines=[ReceiptLine(name="Rod", quantity_received=Decimal("10"), rate=Decimal("100"))],
        subtotal=Decimal("1000"),
        igst=Decimal("180.00"),
        other_charges=Decimal("50"),
        total=Decimal("1230.00"),
    )


@pytest.mark.unit
class TestBuildRegisterRows:
    """Tests for build_register_rows function."""

    def test_row_per_receipt(self, intra_receipt, inter_receipt):
        rows = build_register_rows([intra_receipt, inter_receipt])
        assert len(rows) == 2
        assert list(rows[0]) == REGISTER_HEADERS
        assert rows[0]["GRN No"] == "GRN-0001"
        assert rows[0]["Total"] == "11.80"
        assert rows[0]["GST Type"] == "intra"
        assert rows[1]["GST Type"] == "inter"
        assert rows[1]["Status"] == "Received"

    def test_gst_type_follows_stored_amounts(self, intra_receipt, inter_receipt):
        """A later home-state change does not relabel receipts already taxed."""
        rules = TaxRules(intra_state_prefix="27")
        rows = build_register_rows([intra_receipt, inter_receipt], rules)
        assert [r["GST Type"] for r in rows] == ["intra", "inter"]

    def test_untaxed_receipt_uses_vendor_gstin(self):
        doc = ReceiptDocument(po_number="PO-1", vendor_tax_id="27AAACG1234K1Z2")
        assert build_register_rows([doc])[0]["GST Type"] == "inter"
        assert build_register_rows([doc], TaxRules(intra_state_prefix="27"))[0]["GST Type"] == "intra"

    def test_missing_fields_blank(self):
        rows = build_register_rows([ReceiptDocument(po_number="PO-1")])
        assert rows[0]["GRN No"] == ""
        assert rows[0]["Vendor"] == ""
        assert rows[0]["Total"] == "0.00"


@pytest.mark.unit
class TestWriteRegister:
    """Tests for the CSV and Excel writers."""

    def test_csv(self, temp_dir, intra_receipt, inter_receipt):
        path = write_register_csv(build_register_rows([intra_receipt, inter_receipt]), temp_dir / "out" / "GRNs.csv")
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["GRN No"] for r in rows] == ["GRN-0001", "GRN-0002"]
        assert rows[1]["Total"] == "1230.00"

    def test_xlsx(self, temp_dir, intra_receipt):
        path = write_register_xlsx(build_register_rows([intra_receipt]), temp_dir / "GRNs.xlsx")
        ws = openpyxl.load_workbook(path).active
        assert ws.title == "GRNs"
        rows = list(ws.iter_rows(values_only=True))
        assert list(rows[0]) == REGISTER_HEADERS
        assert rows[1][0] == "GRN-0001"
        assert rows[1][3] == "PO-2024-001"


@pytest.mark.unit
class TestRenderReceiptXML:
    """Tests for render_receipt_xml function."""

    def test_intra_state_receipt(self, intra_receipt):
        xml = render_receipt_xml(intra_receipt)

        assert "<?xml version=" in xml
        assert "<GRNNumber>GRN-0001</GRNNumber>" in xml
        assert "<Transporter>VRL Logistics</Transporter>" in xml
        assert '<Totals gstType="intra">' in xml
        assert "<Subtotal>10.00</Subtotal>" in xml
        assert "<CGST>0.90</CGST>" in xml
        assert "<IGST>" not in xml
        assert "<Amount>10.00</Amount>" in xml

    def test_inter_state_receipt(self, inter_receipt):
        xml = render_receipt_xml(inter_receipt)
        assert "<IGST>180.00</IGST>" in xml
        assert "<CGST>" not in xml
        assert "<OtherCharges>50.00</OtherCharges>" in xml
        assert "<Total>1230.00</Total>" in xml

    def test_intra_receipt_prints_cgst_after_home_state_change(self, intra_receipt):
        xml = render_receipt_xml(intra_receipt, rules=TaxRules(intra_state_prefix="27"))
        assert '<Totals gstType="intra">' in xml
        assert "<CGST>0.90</CGST>" in xml
        assert "<IGST>" not in xml

    def test_xml_escaping(self, inter_receipt):
        xml = render_receipt_xml(inter_receipt)
        assert "A &amp; B Steel &lt;Mumbai&gt;" in xml
        assert "<Mumbai>" not in xml

    def test_custom_template(self, temp_dir, intra_receipt):
        template = temp_dir / "receipt.xml.j2"
        template.write_text("<R n=\"{{ receipt.document_number }}\" t=\"{{ gst_type }}\"/>")
        assert render_receipt_xml(intra_receipt, template) == '<R n="GRN-0001" t="intra"/>'

    def test_missing_template_falls_back_to_default(self, temp_dir, intra_receipt):
        xml = render_receipt_xml(intra_receipt, temp_dir / "nope.xml.j2")
        assert "<GoodsReceipt>" in xml
