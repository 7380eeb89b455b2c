"""
Pytest configuration and shared fixtures for the GRN reconciliation test suite.
"""
import os
import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Generator, Optional

import pytest

from models.purchase_order import PurchaseOrder, PurchaseOrderLine
from models.receipt import ReceiptDocument, ReceiptLine, ReceiptMetadataUpdate
from receiving.errors import RecordServiceError, StaleRemainingQuantity

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="grn_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    # An empty config dir keeps a developer's receiving_settings.json out of the tests
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    config = Config()
    config.records_api_url = "http://records.test/api"
    config.output_dir = temp_dir / "output"
    config.output_dir.mkdir(parents=True, exist_ok=True)
    config.export_dir = temp_dir / "output" / "export"
    config.export_dir.mkdir(parents=True, exist_ok=True)
    config.cache_db_path = temp_dir / "output" / "receiving.db"
    return config


@pytest.fixture
def sample_po() -> PurchaseOrder:
    """Intra-state PO (GSTIN 24…) with three lines."""
    return PurchaseOrder(
        po_number="PO-2024-001",
        vendor_tax_id="24ABCDE1234F1Z5",
        po_date="2024-01-15",
        vendor_name="Acme Fasteners Pvt Ltd",
        vendor_address="12 GIDC Estate, Ahmedabad",
        lines=[
            PurchaseOrderLine(name="Bolt", quantity_ordered=Decimal("100"), rate=Decimal("10"), unit="pcs", hsn_code="7318"),
            PurchaseOrderLine(name="Washer", quantity_ordered=Decimal("50"), rate=Decimal("2.50"), unit="pcs", hsn_code="7318"),
            PurchaseOrderLine(name="Hex Nut", quantity_ordered=Decimal("10"), rate=Decimal("4"), unit="pcs", hsn_code="7318"),
        ],
    )


def make_receipt(
    po_number: str,
    number: str,
    lines: list[tuple[str, str]],
    receipt_date: str = "2024-02-01",
    vendor_tax_id: Optional[str] = "24ABCDE1234F1Z5",
    vendor_name: Optional[str] = "Acme Fasteners Pvt Ltd",
    rate: str = "10",
) -> ReceiptDocument:
    """Build a persisted receipt from (name, quantity) pairs."""
    return ReceiptDocument(
        document_number=number,
        po_number=po_number,
        receipt_date=receipt_date,
        vendor_name=vendor_name,
        vendor_tax_id=vendor_tax_id,
        lines=[
            ReceiptLine(name=name, quantity_received=Decimal(qty), rate=Decimal(rate))
            for name, qty in lines
        ],
        subtotal=Decimal("100"),
        cgst=Decimal("9"),
        sgst=Decimal("9"),
        total=Decimal("118"),
    )


@pytest.fixture
def receipt_factory():
    return make_receipt


@pytest.fixture
def sample_receipts() -> list[ReceiptDocument]:
    """60 Bolts received on PO-2024-001, plus a receipt on another PO."""
    return [
        make_receipt("PO-2024-001", "GRN-0001", [("Bolt", "60")], receipt_date="2024-02-01"),
        make_receipt("PO-2024-002", "GRN-0002", [("Bolt", "500")], receipt_date="2024-02-03",
                     vendor_name="Global Steel", vendor_tax_id="27AAACG1234K1Z2"),
    ]


class FakeRecordClient:
    """In-memory stand-in for RecordServiceClient."""

    def __init__(self, orders=None, receipts=None):
        self.orders = {po.po_number: po for po in (orders or [])}
        self.receipts = list(receipts or [])
        self.created: list[ReceiptDocument] = []
        self.fail_with: Optional[Exception] = None
        self.stale = False
        self.calls: list[str] = []

    def get_purchase_order(self, po_number: str) -> PurchaseOrder:
        self.calls.append(f"get_purchase_order:{po_number}")
        if self.fail_with:
            raise self.fail_with
        if po_number not in self.orders:
            raise RecordServiceError(f"Purchase order not found: {po_number}", 404)
        return self.orders[po_number]

    def list_receipts(self, po_number: Optional[str] = None) -> list[ReceiptDocument]:
        self.calls.append(f"list_receipts:{po_number}")
        if self.fail_with:
            raise self.fail_with
        if po_number is None:
            return list(self.receipts)
        return [r for r in self.receipts if r.po_number == po_number]

    def create_receipt(self, document: ReceiptDocument) -> ReceiptDocument:
        self.calls.append("create_receipt")
        if self.stale:
            raise StaleRemainingQuantity(document.po_number)
        saved = document.model_copy(update={"document_number": f"GRN-{len(self.receipts) + 1:04d}"})
        self.receipts.append(saved)
        self.created.append(saved)
        return saved

    def update_receipt_metadata(self, document_number: str, update: ReceiptMetadataUpdate) -> ReceiptDocument:
        for i, doc in enumerate(self.receipts):
            if doc.document_number == document_number:
                self.receipts[i] = doc.model_copy(update=update.model_dump(exclude_none=True))
                return self.receipts[i]
        raise RecordServiceError(f"Receipt not found: {document_number}", 404)

    def ping(self) -> dict:
        return {"ok": True}


@pytest.fixture
def fake_client(sample_po, sample_receipts) -> FakeRecordClient:
    return FakeRecordClient(orders=[sample_po], receipts=sample_receipts)


@pytest.fixture
def test_cache(test_config) -> "ReceiptCache":
    """Provide a test cache instance."""
    from receiving.cache import ReceiptCache
    return ReceiptCache(test_config.cache_db_path)


@pytest.fixture
def service(test_config, fake_client, test_cache) -> "ReceivingService":
    from receiving.service import ReceivingService
    return ReceivingService(test_config, client=fake_client, cache=test_cache)


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
