"""
tests/integration/conftest.py — Fixtures and helpers for the integration suite.

  - create_app("testing") once per session. TestingConfig points at
    in-memory SQLite unless TEST_DATABASE_URL names a real database.
  - Tables come from db.create_all(); on PostgreSQL split_mode_enum is
    created with them from the model's Enum type.
  - After every test all rows are deleted, children first, so tests never
    see each other's data.

Helpers are plain functions, not fixtures, so tests can call them with any
arguments:
  register / login / auth_headers
  make_group / add_member
  make_transaction / direct_balances
"""

from __future__ import annotations

import pytest

from backend.app import create_app
from backend.app.extensions import db as _db
from backend.app.services.receipt_storage import ReceiptStorage


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    flask_app = create_app("testing")
    flask_app.config["RECEIPT_STORAGE_DIR"] = str(tmp_path_factory.mktemp("receipts"))
    flask_app.extensions["receipt_storage"] = ReceiptStorage(
        flask_app.config["RECEIPT_BASE_URL"],
        flask_app.config["RECEIPT_STORAGE_DIR"],
    )

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    yield

    with app.app_context():
        _db.session.rollback()
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(table.delete())
        _db.session.commit()
        _db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


# ── Helpers ────────────────────────────────────────────────────────────────

def register(
    client,
    username: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """Returns {"user": {...}, "access_token": "...", "refresh_token": "..."}."""
    if email is None:
        email = f"{username}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, username: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_group(
    client,
    token: str,
    name: str = "Test Group",
    member_ids: list[int] | None = None,
    deduplicate: bool = False,
) -> dict:
    """Creates a group (caller is owner) and returns the group dict."""
    payload: dict = {"name": name, "deduplicate": deduplicate}
    if member_ids:
        payload["member_ids"] = member_ids
    resp = client.post("/api/v1/groups/", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_member(client, token: str, group_id: int, user_id: int):
    """Owner token required. Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"user_id": user_id},
        headers=auth_headers(token),
    )


def direct_balances(*pairs) -> list[dict]:
    """direct_balances((1, "10.00"), (2, "-10.00")) → request balances list."""
    return [{"user_id": uid, "amount": amount} for uid, amount in pairs]


def make_transaction(
    client,
    token: str,
    group_id: int,
    amount: str,
    currency: str = "USD",
    name: str = "Dinner",
    **split,
):
    """
    Creates a transaction and returns the HTTP response.

    split carries the mode-specific keys, e.g.
      balances=direct_balances(...)
      split_mode="equal", paid_by_user_id=1, participant_ids=[1, 2]
      split_mode="custom", paid_by_user_id=1, splits=[{...}]
    """
    payload: dict = {"name": name, "amount": amount, "currency": currency}
    payload.update(split)
    return client.post(
        f"/api/v1/groups/{group_id}/transactions",
        json=payload,
        headers=auth_headers(token),
    )


def get_balances(client, token: str, group_id: int):
    return client.get(f"/api/v1/groups/{group_id}/balances", headers=auth_headers(token))


def balance_rows(client, token: str, group_id: int) -> dict:
    """{(user_id, friend_user_id, currency): "amount"} from the balances endpoint."""
    resp = get_balances(client, token, group_id)
    assert resp.status_code == 200, resp.get_json()
    return {
        (r["user_id"], r["friend_user_id"], r["currency"]): r["balance"]
        for r in resp.get_json()["data"]["balances"]
    }
