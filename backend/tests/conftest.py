"""
Pytest fixtures for the gym ledger backend tests.

Provides test database setup, two-tenant isolation fixtures, and test client.
"""

from datetime import datetime

import pytest
from gymledger import create_app
from gymledger.extensions import db
from gymledger.models import Branch, Member, Payment, ProductSale, Tenant
from gymledger.money import decimal_to_cents, parse_amount
from gymledger.time_utils import truncate_to_utc_day


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_JSON': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first gym business)."""
    tenant = Tenant(name="Tenant A - Iron Gym", timezone="UTC")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second gym business)."""
    tenant = Tenant(name="Tenant B - Beta Fitness", timezone="Europe/Istanbul")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def branch_a(db_session, tenant_a):
    """Create Branch A1 in Tenant A."""
    branch = Branch(tenant_id=tenant_a.id, name="Branch A1")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_a2(db_session, tenant_a):
    """Create a second branch in Tenant A."""
    branch = Branch(tenant_id=tenant_a.id, name="Branch A2")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_b(db_session, tenant_b):
    """Create Branch B1 in Tenant B."""
    branch = Branch(tenant_id=tenant_b.id, name="Branch B1")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def member_a(db_session, tenant_a, branch_a):
    """Create a member of Branch A1."""
    member = Member(tenant_id=tenant_a.id, branch_id=branch_a.id, first_name="Ada", last_name="Yilmaz")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def member_b(db_session, tenant_b, branch_b):
    """Create a member of Branch B1."""
    member = Member(tenant_id=tenant_b.id, branch_id=branch_b.id, first_name="Bora", last_name="Kaya")
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def ledger_row(db_session):
    """
    Insert a payment row directly, bypassing the service rules.

    Reports only read committed rows, so this lets tests place payments on
    any date (including ones the create path would call future-dated).
    """
    def _insert(member, amount, paid_on, method="CASH", **flags):
        payment = Payment(
            tenant_id=member.tenant_id,
            branch_id=member.branch_id,
            member_id=member.id,
            amount_cents=decimal_to_cents(parse_amount(amount)),
            paid_on=truncate_to_utc_day(paid_on),
            payment_method=method,
            is_correction=flags.get("is_correction", False),
            is_corrected=flags.get("is_corrected", False),
            corrected_payment_id=flags.get("corrected_payment_id"),
            version=flags.get("version", 0),
            created_by="seed",
        )
        db_session.add(payment)
        db_session.commit()
        return payment

    return _insert


@pytest.fixture(scope='function')
def product_sale(db_session):
    """Insert a product sale for a branch."""
    def _insert(branch, amount, sold_at, method="CASH"):
        if isinstance(sold_at, str):
            sold_at = datetime.fromisoformat(sold_at)
        sale = ProductSale(
            tenant_id=branch.tenant_id,
            branch_id=branch.id,
            sold_at=sold_at,
            total_amount_cents=decimal_to_cents(parse_amount(amount)),
            payment_method=method,
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    return _insert


@pytest.fixture(scope='function')
def tenant_headers():
    """Helper to create gateway tenant headers."""
    def _headers(tenant_id: str, actor_id: str = "user-1") -> dict:
        return {'X-Tenant-ID': tenant_id, 'X-User-ID': actor_id}

    return _headers
