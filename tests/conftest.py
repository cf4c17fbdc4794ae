"""
Pytest configuration and shared fixtures for the document ledger test suite.
"""
import os
import shutil
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

from models.budget import Budget
from models.document import DocumentLine, Payment, TransactionalDocument
from models.status import DocumentKind, PaymentMode, PaymentStatus

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

# Environment variables read by Config; cleared so a developer's shell
# cannot leak into the tests.
_CONFIG_ENV = (
    "LEDGER_BACKEND", "DB_PATH", "SUPABASE_URL", "SUPABASE_KEY",
    "BLOCK_CANCEL_AFTER_PAYMENT", "CURRENCY_SYMBOL", "CURRENCY_DECIMALS",
    "DIGIT_GROUPING", "PDF_CURRENCY_PREFIX", "EXPORT_DIR", "LOG_LEVEL",
)


def make_document(**overrides) -> TransactionalDocument:
    """Build a customer invoice snapshot; any field can be overridden."""
    data = {
        "id": "inv-1",
        "kind": DocumentKind.CUSTOMER_INVOICE,
        "number": "INV-0001",
        "status": "posted",
        "total_amount": Decimal("1000"),
        "paid_amount": Decimal("0"),
        "party_name": "Nimbus Interiors",
        "document_date": date(2026, 1, 10),
        "due_date": date(2026, 2, 10),
    }
    data.update(overrides)
    return TransactionalDocument(**data)


def make_payment(**overrides) -> Payment:
    data = {
        "id": "pay-1",
        "number": "PAY-2601-0001",
        "kind": DocumentKind.CUSTOMER_INVOICE,
        "document_id": "inv-1",
        "status": PaymentStatus.COMPLETED,
        "amount": Decimal("400"),
        "mode": PaymentMode.BANK_TRANSFER,
        "payment_date": date(2026, 1, 15),
    }
    data.update(overrides)
    return Payment(**data)


def make_budget(**overrides) -> Budget:
    data = {
        "id": "bud-1",
        "name": "Workshop Materials FY26",
        "analytical_account_id": "acc-workshop",
        "start_date": date(2026, 4, 1),
        "end_date": date(2027, 3, 31),
        "status": "confirmed",
        "budgeted_amount": Decimal("500"),
        "achieved_amount": Decimal("125"),
    }
    data.update(overrides)
    return Budget(**data)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="ledger_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    for name in _CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))

    config = Config()
    # Override paths to use temp directory
    config.output_dir = temp_dir / "output"
    config.export_dir = temp_dir / "output" / "export"
    config.db_path = temp_dir / "output" / "ledger.db"
    config.ensure_output_dir()
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide an empty test database instance."""
    from ledger.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def seeded_db(test_db) -> "Database":
    """
    A database holding one record per interesting state:

      po-draft       purchase order, draft, 2,500
      so-confirmed   sales order, confirmed, 18,000
      inv-draft      customer invoice, draft, 1,000
      inv-posted     customer invoice, posted, 1,000, nothing paid
      inv-partial    customer invoice, partially paid, 1,000 with 400 paid
      inv-archived   customer invoice, posted but archived
      bill-paid      vendor bill, paid, 500 fully paid
      bud-draft      budget, draft
      bud-confirmed  budget, confirmed, 500 with 125 achieved
    """
    test_db.insert_document(make_document(
        id="po-draft", kind=DocumentKind.PURCHASE_ORDER, number="PO-0001", status="draft",
        total_amount=Decimal("2500"), party_name="Teak Timber Co", due_date=None,
        lines=(
            DocumentLine(product_name="Teak plank", quantity=Decimal("10"),
                         unit_price=Decimal("200"), subtotal=Decimal("2000")),
            DocumentLine(product_name="Wood polish", quantity=Decimal("5"),
                         unit_price=Decimal("100"), subtotal=Decimal("500")),
        ),
    ))
    test_db.insert_document(make_document(
        id="so-confirmed", kind=DocumentKind.SALES_ORDER, number="SO-0001",
        status="confirmed", total_amount=Decimal("18000"), due_date=None,
    ))
    test_db.insert_document(make_document(id="inv-draft", number="INV-0001", status="draft"))
    test_db.insert_document(make_document(id="inv-posted", number="INV-0002", status="posted"))
    test_db.insert_document(make_document(
        id="inv-partial", number="INV-0003", status="partially_paid",
        paid_amount=Decimal("400"),
    ))
    test_db.insert_payment(make_payment(id="pay-partial", document_id="inv-partial"))
    test_db.insert_document(make_document(
        id="inv-archived", number="INV-0004", status="posted", is_archived=True,
    ))
    test_db.insert_document(make_document(
        id="bill-paid", kind=DocumentKind.VENDOR_BILL, number="BILL-0001", status="paid",
        total_amount=Decimal("500"), paid_amount=Decimal("500"), party_name="Teak Timber Co",
    ))
    test_db.insert_payment(make_payment(
        id="pay-bill", number="BPAY-2601-0001", kind=DocumentKind.VENDOR_BILL,
        document_id="bill-paid", amount=Decimal("500"), mode=PaymentMode.CHEQUE,
    ))
    test_db.insert_budget(make_budget(id="bud-draft", name="Showroom Fit-out", status="draft"))
    test_db.insert_budget(make_budget(id="bud-confirmed"))
    return test_db


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
