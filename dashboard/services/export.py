"""
Export service for receipt documents.

Two outputs:
  - the receipt register (one summary row per receipt) as CSV or Excel
  - a printable XML rendering of a single receipt, handed to the
    document-export collaborator that produces the PDF
"""
import csv
import logging
from pathlib import Path
from typing import Iterable, Optional

import openpyxl
from jinja2 import BaseLoader, Environment, FileSystemLoader

from models.receipt import GstType, ReceiptDocument
from receiving.quantities import round2
from receiving.tax import TaxRules

logger = logging.getLogger(__name__)

REGISTER_HEADERS = ["GRN No", "Date", "Vendor", "PO Number", "Total", "GST Type", "Status"]
REGISTER_SHEET = "GRNs"

# Default XML print template
DEFAULT_RECEIPT_XML_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<!--
  Goods receipt print template — edit config/receipt_export_template.xml.j2 to customise.
  Template engine : Jinja2  (https://jinja.palletsprojects.com/)
  Values are XML-escaped automatically.

  Variables:
    receipt   — dict: receipt header fields, lines list, amounts
    gst_type  — "intra" | "inter"
-->
<GoodsReceipt>
  <Header>
    <GRNNumber>{{ receipt.document_number or '' }}</GRNNumber>
    <GRNDate>{{ receipt.receipt_date or '' }}</GRNDate>
    <PONumber>{{ receipt.po_number }}</PONumber>
    {% if receipt.po_date %}<PODate>{{ receipt.po_date }}</PODate>
    {% endif %}
    {% if receipt.lr_number %}<LRNumber>{{ receipt.lr_number }}</LRNumber>
    {% endif %}
    {% if receipt.transporter %}<Transporter>{{ receipt.transporter }}</Transporter>
    {% endif %}
    {% if receipt.vehicle_number %}<VehicleNo>{{ receipt.vehicle_number }}</VehicleNo>
    {% endif %}
  </Header>

  <Vendor>
    <Name>{{ receipt.vendor_name or '' }}</Name>
    {% if receipt.vendor_tax_id %}<GSTIN>{{ receipt.vendor_tax_id }}</GSTIN>
    {% endif %}
    {% if receipt.vendor_address %}<Address>{{ receipt.vendor_address }}</Address>
    {% endif %}
    {% if receipt.vendor_contact %}<Contact>{{ receipt.vendor_contact }}</Contact>
    {% endif %}
    {% if receipt.vendor_email %}<Email>{{ receipt.vendor_email }}</Email>
    {% endif %}
  </Vendor>

  <Items>
    {% for item in receipt.lines %}
    <Item number="{{ loop.index }}">
      <Name>{{ item.name }}</Name>
      {% if item.description %}<Description>{{ item.description }}</Description>
      {% endif %}
      {% if item.hsn_code %}<HSN>{{ item.hsn_code }}</HSN>
      {% endif %}
      <Quantity>{{ item.quantity_received }}</Quantity>
      <Rate>{{ item.rate }}</Rate>
      {% if item.unit %}<Unit>{{ item.unit }}</Unit>
      {% endif %}
      <Amount>{{ item.amount }}</Amount>
    </Item>
    {% endfor %}
  </Items>

  <Totals gstType="{{ gst_type }}">
    <Subtotal>{{ receipt.subtotal }}</Subtotal>
    {% if gst_type == 'intra' %}<CGST>{{ receipt.cgst }}</CGST>
    <SGST>{{ receipt.sgst }}</SGST>
    {% else %}<IGST>{{ receipt.igst }}</IGST>
    {% endif %}
    <OtherCharges>{{ receipt.other_charges }}</OtherCharges>
    <Total>{{ receipt.total }}</Total>
  </Totals>
  {% if receipt.comments %}
  <Comments>{{ receipt.comments }}</Comments>
  {% endif %}
</GoodsReceipt>
"""


def build_register_rows(
    receipts: Iterable[ReceiptDocument],
    rules: Optional[TaxRules] = None,
) -> list[dict]:
    """One summary row per receipt, keyed by REGISTER_HEADERS."""
    return [
        {
            "GRN No":    doc.document_number or "",
            "Date":      doc.receipt_date or "",
            "Vendor":    doc.vendor_name or "",
            "PO Number": doc.po_number,
            "Total":     f"{round2(doc.total):.2f}",
            "GST Type":  receipt_gst_type(doc, rules),
            "Status":    "Received",
        }
        for doc in receipts
    ]


def write_register_csv(rows: list[dict], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=REGISTER_HEADERS)
        writer.writeheader()
        writer.writerows(rows)
    logger.info("Saved receipt register: %s (%d rows)", path, len(rows))
    return path


def write_register_xlsx(rows: list[dict], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = REGISTER_SHEET
    ws.append(REGISTER_HEADERS)
    for row in rows:
        ws.append([row.get(h, "") for h in REGISTER_HEADERS])
    wb.save(path)
    logger.info("Saved receipt register: %s (%d rows)", path, len(rows))
    return path


def receipt_gst_type(doc: ReceiptDocument, rules: Optional[TaxRules] = None) -> GstType:
    """GST split recorded on the receipt; the vendor GSTIN decides only when no tax was charged."""
    if doc.cgst or doc.sgst:
        return "intra"
    if doc.igst:
        return "inter"
    return (rules or TaxRules()).gst_type(doc.vendor_tax_id)


def receipt_context(doc: ReceiptDocument, rules: Optional[TaxRules] = None) -> dict:
    """Template variables for one receipt; line amounts are rounded for print."""
    receipt = doc.model_dump()
    for item, line in zip(receipt["lines"], doc.lines):
        item["amount"] = f"{round2(line.quantity_received * line.rate):.2f}"
    for key in ("subtotal", "cgst", "sgst", "igst", "other_charges", "total"):
        receipt[key] = f"{round2(getattr(doc, key)):.2f}"
    return {"receipt": receipt, "gst_type": receipt_gst_type(doc, rules)}


def render_receipt_xml(
    doc: ReceiptDocument,
    template_file: Path | None = None,
    rules: Optional[TaxRules] = None,
) -> str:
    """
    Render *doc* as XML using the operator template (or built-in default).

    Args:
        doc: The persisted receipt document
        template_file: Optional path to custom Jinja2 template file
        rules: GST settings, used only for a receipt that charged no tax
    """
    if template_file and template_file.exists():
        env = Environment(
            loader=FileSystemLoader(str(template_file.parent)),
            autoescape=True,
            keep_trailing_newline=True,
        )
        tmpl = env.get_template(template_file.name)
    else:
        env = Environment(loader=BaseLoader(), autoescape=True, keep_trailing_newline=True)
        tmpl = env.from_string(DEFAULT_RECEIPT_XML_TEMPLATE)
    return tmpl.render(**receipt_context(doc, rules))
