"""
Pytest fixtures for GeStock backend tests.

Provides the application on an in-memory database, a test client, a clean
database per test (stocks reseeded) and entity fixtures for each stock.
"""

import pytest
from gestock import create_app
from gestock.extensions import db
from gestock.models import Client, Fournisseur, Product, User
from gestock.services import login_throttle_service
from gestock.services.auth_service import hash_password
from gestock.services.sales_service import create_sale
from gestock.services.stock_service import ensure_stocks


AL_OULOUM = 1
RENAISSANCE = 2
GROS = 3

PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RATE_LIMIT_ENABLED': False,
        'BCRYPT_ROUNDS': 4,
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

        ensure_stocks()
        db.session.commit()
        login_throttle_service.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _user(db_session, username, role, stock_id):
    user = User(
        username=username,
        email=f"{username}@gestock.test",
        password_hash=hash_password(PASSWORD),
        role=role,
        stock_id=stock_id,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier(db_session):
    """Cashier working at La Renaissance."""
    return _user(db_session, "caissier_ren", "caissier", RENAISSANCE)


@pytest.fixture(scope='function')
def depot_admin(db_session):
    """Admin of the central depot (gros)."""
    return _user(db_session, "admin_gros", "admin", GROS)


@pytest.fixture(scope='function')
def super_admin(db_session):
    return _user(db_session, "root", "super_admin", None)


@pytest.fixture(scope='function')
def shelf_product(db_session):
    """Stock-scoped product at La Renaissance with 10 on hand."""
    product = Product(name="Cahier 96 pages", reference="CAH-96", price=12, quantity=10, stock_id=RENAISSANCE)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def depot_product(db_session):
    """Stock-scoped product at the depot with 50 on hand."""
    product = Product(name="Stylo bleu", reference="STY-B", price=2.5, quantity=50, stock_id=GROS)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def global_product(db_session):
    product = Product(name="Règle 30cm", reference="REG-30", price=5, quantity=999999, stock_id=None)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def renaissance_client(db_session):
    party = Client(name="Ecole Ibn Sina", phone="0612345678", stock_id=RENAISSANCE)
    db_session.add(party)
    db_session.commit()
    return party


@pytest.fixture(scope='function')
def depot_fournisseur(db_session):
    party = Fournisseur(name="Papeterie du Nord", contact_person="Said", stock_id=GROS)
    db_session.add(party)
    db_session.commit()
    return party


@pytest.fixture(scope='function')
def sale(db_session, cashier, shelf_product, renaissance_client):
    """Paid sale at La Renaissance: 3 x shelf_product at 12.00."""
    recorded = create_sale({
        "user_id": cashier.id,
        "stock_id": RENAISSANCE,
        "client_id": renaissance_client.id,
        "items": [{"product_id": shelf_product.id, "quantity": 3, "unit_price": 12}],
        "total": 36,
        "payment_method": "cash",
        "payment_status": "paid",
    })
    db_session.commit()
    return recorded
