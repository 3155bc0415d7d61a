"""
Pytest fixtures for LedgerPOS backend tests.

Provides test database setup, catalog/party fixtures, a manual timer for
autosave, and test client.
"""

import pytest
from ledgerpos import create_app
from ledgerpos.extensions import db
from ledgerpos.models import Account, Category, Customer, Product, Vendor
from ledgerpos.models.catalog import PRICING_FIXED_MARGIN
from ledgerpos.services import cash_session_service
from ledgerpos.services.terminal_service import terminals


class ManualTimer:
    """threading.Timer stand-in that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled and not self.fired:
            self.fired = True
            self.function()


class TimerRecorder:
    """Timer factory that keeps every timer it hands out."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]

    def fire_pending(self):
        for timer in self.live:
            timer.fire()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(autouse=True)
def timers():
    """Manual autosave timers for every terminal session; nothing fires on its own."""
    recorder = TimerRecorder()
    terminals.clear()
    terminals.timer_factory = recorder
    yield recorder
    terminals.clear()


@pytest.fixture(scope='function')
def cash_account(db_session):
    account = Account(id="cash", name="Cash Drawer", balance_cents=0)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def bank_account(db_session):
    account = Account(id="bank-1", name="Main Bank", account_number="001-234", balance_cents=100000)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def open_day(db_session):
    """Today's cash float for the default branch."""
    return cash_session_service.open_day("MAIN", 10000)


@pytest.fixture(scope='function')
def grocery(db_session):
    category = Category(id="grocery", name="Grocery")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def reload_category(db_session):
    category = Category(id="reload", name="Reload", pricing_policy=PRICING_FIXED_MARGIN, fixed_margin_percent=4)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def rice(db_session, grocery):
    product = Product(
        id="PRD-RICE",
        name="Rice 5kg",
        sku="RICE-5",
        price_cents=1000,
        cost_cents=700,
        stock=10,
        low_stock_threshold=2,
        category_id=grocery.id,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def soap(db_session, grocery):
    product = Product(
        id="PRD-SOAP",
        name="Soap",
        sku="SOAP-1",
        price_cents=250,
        cost_cents=150,
        stock=3,
        category_id=grocery.id,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def airtime(db_session, reload_category):
    """Fixed-margin wallet product; stock is the wallet value in cents."""
    product = Product(
        id="PRD-AIRTIME",
        name="Airtime",
        price_cents=100,
        cost_cents=0,
        stock=50000,
        category_id=reload_category.id,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(id="CUS-1", name="Nimal Perera", phone="0771234567")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def vendor(db_session):
    v = Vendor(id="VEN-1", name="Lanka Traders", contact_person="Sunil")
    db_session.add(v)
    db_session.commit()
    return v
