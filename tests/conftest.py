from contextlib import contextmanager
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from flowershop import config
from flowershop.main import create_app
from flowershop.models.catalog import Category, Flower
from flowershop.models.order import Order
from flowershop.models.user import User
from flowershop.utils.security import create_access_token, hash_password


@pytest.fixture(autouse=True)
def _no_telegram_token(monkeypatch):
    monkeypatch.setattr(config, "TELEGRAM_BOT_TOKEN", "")


@pytest.fixture
def app():
    return create_app("sqlite://")


@pytest.fixture
def client(app):
    # lifespan создаёт таблицы
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session_factory(app, client):
    return app.state.ctx.session_factory


@pytest.fixture
def make_category(session_factory):
    def _make(name="Розы", slug=None):
        with session_factory() as s:
            c = Category(name=name, slug=slug or name.lower())
            s.add(c)
            s.commit()
            return c.id
    return _make


@pytest.fixture
def make_flower(session_factory):
    def _make(name="Rose", price="10.00", stock=5, is_available=True, category_id=None, popularity=0):
        with session_factory() as s:
            f = Flower(
                name=name,
                price=Decimal(price),
                stock_quantity=stock,
                is_available=is_available,
                category_id=category_id,
                popularity=popularity,
            )
            s.add(f)
            s.commit()
            return f.id
    return _make


@pytest.fixture
def stock_of(session_factory):
    def _stock(flower_id):
        with session_factory() as s:
            return s.get(Flower, flower_id).stock_quantity
    return _stock


@pytest.fixture
def count_orders(session_factory):
    def _count():
        with session_factory() as s:
            return s.query(Order).count()
    return _count


@pytest.fixture
def make_user(session_factory):
    def _make(email="user@example.com", password="secret", is_admin=False, is_active=True, telegram_id=None):
        with session_factory() as s:
            u = User(
                email=email,
                password_hash=hash_password(password) if password else None,
                is_admin=is_admin,
                is_active=is_active,
                telegram_id=telegram_id,
            )
            s.add(u)
            s.commit()
            return u.id
    return _make


def _bearer(user_id, is_admin=False):
    return {"Authorization": f"Bearer {create_access_token(user_id, is_admin=is_admin)}"}


@pytest.fixture
def bearer():
    return _bearer


@pytest.fixture
def admin_headers(make_user):
    return _bearer(make_user(email="admin@example.com", is_admin=True), is_admin=True)


@pytest.fixture
def user_headers(make_user):
    return _bearer(make_user(email="customer@example.com"))


@pytest.fixture
def order_payload():
    def _payload(*items, **overrides):
        body = {
            "customer_name": "Анна",
            "customer_phone": "+7 700 000 00 00",
            "customer_address": "Алматы, ул. Абая 1",
            "items": [{"flower_id": fid, "quantity": qty} for fid, qty in items],
        }
        body.update(overrides)
        return body
    return _payload


def _commit_then_fail(self):
    # изменения уже ушли в БД, но транзакция не фиксируется
    self.flush()
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


@pytest.fixture
def failing_commit(monkeypatch):
    @contextmanager
    def _ctx():
        with monkeypatch.context() as m:
            m.setattr(Session, "commit", _commit_then_fail)
            yield
    return _ctx
