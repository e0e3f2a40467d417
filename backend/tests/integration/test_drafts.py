"""
tests/integration/test_drafts.py — Private drafts and publishing.

Properties verified:
  - Drafts accept partial data and never touch the ledger
  - Only the owner sees or changes a draft
  - Publishing creates a direct transaction and removes the draft atomically
"""

from __future__ import annotations

from backend.app.extensions import db as _db
from backend.app.models.transaction_draft import TransactionDraft

from .conftest import (
    add_member,
    auth_headers,
    balance_rows,
    direct_balances,
    make_group,
    register,
)


def _create(client, token, **body):
    return client.post("/api/v1/drafts/", json=body, headers=auth_headers(token))


def _pair(client):
    alice = register(client, "alice")
    bob = register(client, "bob")
    group = make_group(client, alice["access_token"])
    add_member(client, alice["access_token"], group["id"], bob["user"]["id"])
    return alice, bob, group


class TestDraftCrud:

    def test_empty_draft(self, client):
        alice = register(client, "alice")

        resp = _create(client, alice["access_token"])

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["user_id"] == alice["user"]["id"]
        assert data["group_id"] is None
        assert data["balances"] == []

    def test_unbalanced_draft_is_accepted_and_ledger_untouched(self, client):
        alice, bob, group = _pair(client)

        resp = _create(
            client, alice["access_token"],
            group_id=group["id"], name="Half done", amount="20.00", currency="USD",
            balances=direct_balances((alice["user"]["id"], "20.00")),
        )

        assert resp.status_code == 201, resp.get_json()
        assert resp.get_json()["data"]["amount"] == "20.00"
        assert balance_rows(client, alice["access_token"], group["id"]) == {}

    def test_list_only_own(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        _create(client, alice["access_token"], name="a1")
        _create(client, alice["access_token"], name="a2")
        _create(client, bob["access_token"], name="b1")

        resp = client.get("/api/v1/drafts/", headers=auth_headers(alice["access_token"]))

        assert resp.status_code == 200
        assert sorted(d["name"] for d in resp.get_json()["data"]) == ["a1", "a2"]

    def test_put_replaces_everything(self, client):
        alice = register(client, "alice")
        draft = _create(
            client, alice["access_token"],
            name="Taxi", amount="9.00", tags=[{"name": "travel"}],
        ).get_json()["data"]

        resp = client.put(
            f"/api/v1/drafts/{draft['id']}",
            json={"name": "Cab"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["name"] == "Cab"
        assert data["amount"] is None
        assert data["tags"] == []

    def test_delete(self, client):
        alice = register(client, "alice")
        draft = _create(client, alice["access_token"], name="x").get_json()["data"]

        resp = client.delete(f"/api/v1/drafts/{draft['id']}", headers=auth_headers(alice["access_token"]))
        after = client.get(f"/api/v1/drafts/{draft['id']}", headers=auth_headers(alice["access_token"]))

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"id": draft["id"], "deleted": True}
        assert after.status_code == 404
        assert after.get_json()["error"]["code"] == "DRAFT_NOT_FOUND"

    def test_someone_elses_draft(self, client):
        alice = register(client, "alice")
        mallory = register(client, "mallory")
        draft = _create(client, alice["access_token"], name="secret").get_json()["data"]

        get = client.get(f"/api/v1/drafts/{draft['id']}", headers=auth_headers(mallory["access_token"]))
        put = client.put(
            f"/api/v1/drafts/{draft['id']}",
            json={"name": "mine now"},
            headers=auth_headers(mallory["access_token"]),
        )

        assert get.status_code == put.status_code == 403
        assert get.get_json()["error"]["code"] == "FORBIDDEN"


class TestDraftValidation:

    def test_group_the_caller_is_not_in(self, client):
        alice = register(client, "alice")
        mallory = register(client, "mallory")
        group = make_group(client, alice["access_token"])

        resp = _create(client, mallory["access_token"], group_id=group["id"])

        assert resp.status_code == 403

    def test_unknown_group(self, client):
        alice = register(client, "alice")

        resp = _create(client, alice["access_token"], group_id=777777)

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"

    def test_balance_user_outside_group(self, client):
        alice, _, group = _pair(client)
        carol = register(client, "carol")

        resp = _create(
            client, alice["access_token"],
            group_id=group["id"],
            balances=direct_balances((carol["user"]["id"], "5.00")),
        )

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "BALANCE_USER_NOT_MEMBER"

    def test_bad_currency(self, client):
        alice = register(client, "alice")

        resp = _create(client, alice["access_token"], currency="dollars")

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "INVALID_CURRENCY"

    def test_blank_name_rejected(self, client):
        alice = register(client, "alice")
        draft = _create(client, alice["access_token"], name="Taxi").get_json()["data"]

        created = _create(client, alice["access_token"], name="   ", amount="10.00", currency="USD")
        replaced = client.put(
            f"/api/v1/drafts/{draft['id']}",
            json={"name": "\t"},
            headers=auth_headers(alice["access_token"]),
        )

        for resp in (created, replaced):
            assert resp.status_code == 400
            error = resp.get_json()["error"]
            assert error["code"] == "INVALID_FIELD"
            assert error["field"] == "name"

    def test_balance_too_large_to_store(self, client):
        alice, _, group = _pair(client)
        a = alice["user"]["id"]

        resp = _create(
            client, alice["access_token"], group_id=group["id"],
            balances=direct_balances((a, "9999999999.99"), (a, "0.01")),
        )

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "AMOUNT_OUT_OF_RANGE"

    def test_amount_precision_still_checked(self, client):
        alice = register(client, "alice")

        resp = _create(client, alice["access_token"], amount="1.234")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_AMOUNT_PRECISION"


class TestPublish:

    def test_publish_creates_transaction_and_removes_draft(self, client):
        alice, bob, group = _pair(client)
        a, b = alice["user"]["id"], bob["user"]["id"]
        draft = _create(
            client, alice["access_token"],
            group_id=group["id"], name="Groceries", amount="30.00", currency="USD",
            tags=[{"name": "food"}],
            balances=direct_balances((a, "30.00"), (b, "-30.00")),
        ).get_json()["data"]

        resp = client.post(
            f"/api/v1/drafts/{draft['id']}/publish",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 201, resp.get_json()
        tx = resp.get_json()["data"]
        assert tx["group_id"] == group["id"]
        assert tx["name"] == "Groceries"
        assert [t["name"] for t in tx["tags"]] == ["food"]
        assert balance_rows(client, alice["access_token"], group["id"]) == {(a, b, "USD"): "30.00"}
        gone = client.get(f"/api/v1/drafts/{draft['id']}", headers=auth_headers(alice["access_token"]))
        assert gone.status_code == 404

    def test_incomplete_draft(self, client):
        alice, _, group = _pair(client)
        draft = _create(client, alice["access_token"], group_id=group["id"], name="No amount").get_json()["data"]

        resp = client.post(
            f"/api/v1/drafts/{draft['id']}/publish",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "DRAFT_INCOMPLETE"

    def test_unbalanced_draft_fails_and_survives(self, client):
        alice, bob, group = _pair(client)
        draft = _create(
            client, alice["access_token"],
            group_id=group["id"], name="Off", amount="10.00", currency="USD",
            balances=direct_balances((alice["user"]["id"], "10.00"), (bob["user"]["id"], "-9.00")),
        ).get_json()["data"]

        resp = client.post(
            f"/api/v1/drafts/{draft['id']}/publish",
            headers=auth_headers(alice["access_token"]),
        )
        still_there = client.get(f"/api/v1/drafts/{draft['id']}", headers=auth_headers(alice["access_token"]))

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "BALANCE_SUM_NONZERO"
        assert still_there.status_code == 200

    def test_blank_stored_name_counts_as_missing(self, app, client):
        alice, bob, group = _pair(client)
        draft = _create(
            client, alice["access_token"],
            group_id=group["id"], name="Lunch", amount="10.00", currency="USD",
            balances=direct_balances((alice["user"]["id"], "10.00"), (bob["user"]["id"], "-10.00")),
        ).get_json()["data"]
        # A row written before blank names were refused.
        with app.app_context():
            _db.session.get(TransactionDraft, draft["id"]).name = "   "
            _db.session.commit()

        resp = client.post(
            f"/api/v1/drafts/{draft['id']}/publish",
            headers=auth_headers(alice["access_token"]),
        )
        still_there = client.get(f"/api/v1/drafts/{draft['id']}", headers=auth_headers(alice["access_token"]))

        assert resp.status_code == 422
        error = resp.get_json()["error"]
        assert error["code"] == "DRAFT_INCOMPLETE"
        assert error["field"] == "name"
        assert still_there.status_code == 200
        assert balance_rows(client, alice["access_token"], group["id"]) == {}
