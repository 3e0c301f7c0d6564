"""
Pytest fixtures for Warung POS backend tests.

Provides a file-backed SQLite app, per-test table wipe, test client, and
catalog/inventory fixtures for the dimsum menu.
"""

from decimal import Decimal

import httpx
import pytest
from warung_pos import create_app
from warung_pos.extensions import db, printer
from warung_pos.models import Category, Product, RecipeEntry, User
from warung_pos.services import inventory_service


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("db") / "warung_pos_test.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PRINT_SERVER_URL': 'http://printer.test',
        'PRINT_ON_COMMIT': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        printer.shutdown(app)
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


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
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def cashier(db_session):
    user = User(email="sari@warung.test", first_name="Sari", role="employee")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    user = User(email="admin@warung.test", first_name="Budi", role="admin")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def chicken(db_session):
    """5 kg of chicken, opening stock posted through the ledger."""
    return inventory_service.create_item({
        "name": "Chicken",
        "unit": "kg",
        "stock": Decimal("5"),
        "min_stock": Decimal("1"),
        "cost": Decimal("45000"),
    })


@pytest.fixture(scope='function')
def satuan(db_session):
    category = Category(name="Satuan", type="satuan")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def dimsum_ayam(db_session, satuan, chicken):
    """Dimsum Ayam @ 50000, consumes 0.1 kg chicken per unit."""
    product = Product(name="Dimsum Ayam", category_id=satuan.id, price=Decimal("50000"))
    db_session.add(product)
    db_session.flush()
    db_session.add(RecipeEntry(product_id=product.id, inventory_id=chicken.id, quantity=Decimal("0.1")))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def cashier_headers(cashier) -> dict:
    """Identify the caller the way the upstream auth layer does."""
    return {'X-User-Id': str(cashier.id)}


@pytest.fixture(scope='function')
def admin_headers(admin) -> dict:
    return {'X-User-Id': str(admin.id)}


@pytest.fixture(scope='function')
def print_server(app, monkeypatch):
    """
    Route the printer client through httpx.MockTransport.

    Call with the desired device behaviour; returns the list that captures
    every request the gateway sends.
    """
    def install(*, connected=True, print_success=True, fail_with=None):
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            if fail_with is not None:
                raise fail_with
            if request.url.path == "/status":
                return httpx.Response(200, json={
                    "connected": connected,
                    "printer": "RPP02N",
                    "status": "ready" if connected else "offline",
                })
            if request.url.path == "/print":
                if print_success:
                    return httpx.Response(200, json={
                        "success": True,
                        "message": "Receipt printed successfully",
                        "printer": "RPP02N",
                        "timestamp": "2026-10-18T07:00:00Z",
                    })
                return httpx.Response(200, json={"success": False, "message": "Paper out"})
            return httpx.Response(404)

        monkeypatch.setitem(app.config, "PRINT_TRANSPORT", httpx.MockTransport(handler))
        return captured

    return install
