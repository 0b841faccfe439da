import os
import uuid
from types import SimpleNamespace

# Settings are read once, at import time of the app modules.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"
os.environ["SUPABASE_JWT_ALG"] = "HS256"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlmodel import Session, SQLModel

from marketplace.core import notifier as notifier_module
from marketplace.core.storage_utils import StoredBlob
from marketplace.database import engine
from marketplace.main import app
from marketplace.models.product import Product
from marketplace.models.user import User
from marketplace.services import product_service as product_service_module


def make_token(user_id: uuid.UUID, email: str) -> str:
    return jwt.encode(
        {"sub": str(user_id), "email": email},
        os.environ["SUPABASE_JWT_SECRET"],
        algorithm="HS256",
    )


@pytest.fixture(autouse=True)
def db():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []

    def fake_send_email(to_email, subject, text_body, html_body=None):
        sent.append({"to": to_email, "subject": subject, "body": text_body})

    monkeypatch.setattr(notifier_module, "send_email", fake_send_email)
    return sent


@pytest.fixture(autouse=True)
def blob_store(monkeypatch):
    store = SimpleNamespace(uploaded=[], deleted=[])

    def fake_upload(folder, ext, file_bytes):
        blob_id = f"{folder}/{len(store.uploaded)}.{ext}"
        store.uploaded.append(blob_id)
        return StoredBlob(id=blob_id, url=f"https://cdn.example.com/{blob_id}")

    def fake_delete(blob_id):
        store.deleted.append(blob_id)

    monkeypatch.setattr(product_service_module, "upload_blob", fake_upload)
    monkeypatch.setattr(product_service_module, "delete_blob", fake_delete)
    return store


def _create_user(name: str, role: str = "user") -> SimpleNamespace:
    user_id = uuid.uuid4()
    email = f"{name}@example.com"
    with Session(engine) as session:
        session.add(User(id=user_id, email=email, name=name, role=role))
        session.commit()
    return SimpleNamespace(
        id=user_id,
        email=email,
        headers={"Authorization": f"Bearer {make_token(user_id, email)}"},
    )


@pytest.fixture()
def customer():
    return _create_user("alice")


@pytest.fixture()
def other_customer():
    return _create_user("bob")


@pytest.fixture()
def admin():
    return _create_user("root", role="admin")


@pytest.fixture()
def make_user():
    return _create_user


@pytest.fixture()
def make_product():
    def _make(
        name: str = "Camera",
        price: float = 10.0,
        stock_on_hand: int = 5,
        category: str = "Cameras",
        **extra,
    ) -> uuid.UUID:
        with Session(engine) as session:
            product = Product(
                name=name,
                price=price,
                stock_on_hand=stock_on_hand,
                category=category,
                **extra,
            )
            session.add(product)
            session.commit()
            return product.id

    return _make


@pytest.fixture()
def load():
    """Read a row by primary key in a fresh session."""

    def _load(model, pk):
        with Session(engine) as session:
            return session.get(model, pk)

    return _load
