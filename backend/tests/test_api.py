"""
HTTP API tests.

Covers the authentication and role gates, the request deadline, and one
full purchase cycle driven entirely through the API:
create sheet -> add requests -> compare -> save prices -> finalize -> close -> history.
"""

from datetime import timedelta

import pytest

from bookcycle.models import BookRequest, FinalizedPurchase, PurchaseSheet
from bookcycle.services import settings_service
from bookcycle.time_utils import utcnow

from conftest import PASSWORD, add_request


class TestAuthGates:
    @pytest.mark.parametrize("method,path", [
        ("get", "/api/sheets"),
        ("get", "/api/requests"),
        ("get", "/api/prices"),
        ("get", "/api/purchases"),
        ("get", "/api/history"),
        ("get", "/api/auth/me"),
        ("get", "/api/dashboard"),
    ])
    def test_missing_token_is_401(self, client, db_session, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401

    def test_bad_token_is_401(self, client, db_session):
        response = client.get("/api/sheets", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/prices"),
        ("get", "/api/purchases"),
        ("post", "/api/purchases/finalize-all"),
        ("post", "/api/purchases/close-cycle"),
        ("get", "/api/history"),
        ("get", "/api/activity"),
        ("get", "/api/sheets/teachers"),
        ("get", "/api/users"),
        ("patch", "/api/users/1/role"),
    ])
    def test_admin_routes_reject_teachers(self, client, teacher_headers, method, path):
        response = getattr(client, method)(path, headers=teacher_headers)

        assert response.status_code == 403
        assert response.get_json()["required_roles"] == ["admin"]

    def test_admins_cannot_create_requests(self, client, admin_headers, pending_sheet):
        response = client.post("/api/requests", headers=admin_headers, json={
            "sheet_id": pending_sheet.id,
            "book_name": "Calculus",
            "author": "Stewart",
            "edition": "8th",
            "quantity": 1,
        })
        assert response.status_code == 403


class TestAuthRoutes:
    def test_login_me_logout(self, client, teacher):
        login = client.post("/api/auth/login", json={"email": "alice@school.test", "password": PASSWORD})
        assert login.status_code == 200
        headers = {"Authorization": f"Bearer {login.get_json()['token']}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.get_json()["user"]["email"] == "alice@school.test"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_credentials(self, client, teacher):
        response = client.post("/api/auth/login", json={"email": "alice@school.test", "password": "Wrong123!"})
        assert response.status_code == 401

    def test_login_requires_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_register_teacher(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "email": "new@school.test",
            "password": PASSWORD,
            "full_name": "Nia New",
            "department": "civil_engineering",
        })

        assert response.status_code == 201
        assert response.get_json()["user"]["role"] == "teacher"

    def test_register_disabled(self, client, db_session):
        settings_service.update_settings(teacher_registration_enabled=False)

        response = client.post("/api/auth/register", json={
            "email": "late@school.test",
            "password": PASSWORD,
            "full_name": "Lee Late",
            "department": "civil_engineering",
        })

        assert response.status_code == 403

    def test_change_password_revokes_sessions(self, client, teacher, teacher_headers):
        response = client.post("/api/auth/change-password", headers=teacher_headers, json={
            "current_password": PASSWORD,
            "new_password": "Changed456!",
        })

        assert response.status_code == 200
        assert response.get_json()["sessions_revoked"] >= 1
        assert client.get("/api/auth/me", headers=teacher_headers).status_code == 401


class TestTeacherRequests:
    def _payload(self, sheet_id, **extra):
        return {
            "sheet_id": sheet_id,
            "book_name": "Calculus",
            "author": "Stewart",
            "edition": "8th",
            "quantity": 3,
            **extra,
        }

    def test_create_on_own_sheet(self, client, teacher_headers, pending_sheet):
        response = client.post("/api/requests", headers=teacher_headers, json=self._payload(pending_sheet.id))

        assert response.status_code == 201
        body = response.get_json()["request"]
        assert body["teacher_name"] == "Alice Anand"
        assert body["quantity"] == 3

    def test_create_on_other_teachers_sheet(self, client, teacher_b, pending_sheet):
        from conftest import headers_for

        response = client.post("/api/requests", headers=headers_for(teacher_b), json=self._payload(pending_sheet.id))
        assert response.status_code == 403

    def test_zero_quantity_rejected(self, client, teacher_headers, pending_sheet):
        response = client.post(
            "/api/requests",
            headers=teacher_headers,
            json=self._payload(pending_sheet.id, quantity=0),
        )

        assert response.status_code == 400
        assert BookRequest.query.count() == 0

    def test_deadline_passed(self, client, teacher_headers, pending_sheet):
        settings_service.update_settings(request_deadline=utcnow() - timedelta(hours=1))

        response = client.post("/api/requests", headers=teacher_headers, json=self._payload(pending_sheet.id))

        assert response.status_code == 403
        assert BookRequest.query.count() == 0

    def test_teacher_lists_only_own_requests(self, client, teacher, teacher_b, teacher_headers, pending_sheet):
        add_request(pending_sheet, teacher, book_name="Mine")
        add_request(pending_sheet, teacher_b, book_name="Theirs")

        response = client.get("/api/requests", headers=teacher_headers)

        assert [r["book_name"] for r in response.get_json()["requests"]] == ["Mine"]

    def test_admin_listing_requires_sheet_id(self, client, admin_headers):
        assert client.get("/api/requests", headers=admin_headers).status_code == 400

    def test_teacher_sees_only_assigned_sheets(self, client, teacher_b, teacher_headers, pending_sheet):
        from conftest import make_sheet

        other = make_sheet(teacher_b.id, name="Bob's sheet")

        listing = client.get("/api/sheets", headers=teacher_headers).get_json()["sheets"]
        assert [s["id"] for s in listing] == [pending_sheet.id]
        assert client.get(f"/api/sheets/{other.id}", headers=teacher_headers).status_code == 403


class TestUsers:
    def test_list_with_stats(self, client, admin_headers, teacher, teacher_b):
        response = client.get("/api/users?role=teacher&q=bob", headers=admin_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert [u["full_name"] for u in body["users"]] == ["Bob Bose"]
        assert "password_hash" not in body["users"][0]
        assert body["stats"]["total_users"] == 3
        assert body["stats"]["teacher_users"] == 2

    def test_unknown_department_is_400(self, client, admin_headers):
        response = client.get("/api/users?department=astrology", headers=admin_headers)
        assert response.status_code == 400

    def test_promote(self, client, admin_headers, teacher):
        response = client.patch(f"/api/users/{teacher.id}/role", headers=admin_headers, json={"role": "admin"})

        assert response.status_code == 200
        assert response.get_json()["user"]["role"] == "admin"

    def test_own_role_is_403(self, client, admin, admin_headers):
        response = client.patch(f"/api/users/{admin.id}/role", headers=admin_headers, json={"role": "teacher"})
        assert response.status_code == 403

    def test_bad_role_is_400(self, client, admin_headers, teacher):
        response = client.patch(f"/api/users/{teacher.id}/role", headers=admin_headers, json={"role": "owner"})
        assert response.status_code == 400

    def test_unknown_user_is_404(self, client, admin_headers):
        response = client.patch("/api/users/9999/role", headers=admin_headers, json={"role": "admin"})
        assert response.status_code == 404


class TestDashboard:
    def test_admin_dashboard(self, client, admin_headers, teacher, pending_sheet):
        add_request(pending_sheet, teacher)

        response = client.get("/api/dashboard", headers=admin_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["role"] == "admin"
        assert body["dashboard"]["total_teachers"] == 1
        assert body["dashboard"]["total_requests"] == 1
        assert body["dashboard"]["pending_sheets"] == 1
        assert isinstance(body["dashboard"]["recent_activity"], list)
        assert "request_window_open" in body["dashboard"]

    def test_teacher_dashboard(self, client, teacher, teacher_headers, pending_sheet):
        add_request(pending_sheet, teacher, book_name="Calculus")

        response = client.get("/api/dashboard", headers=teacher_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["role"] == "teacher"
        assert body["dashboard"]["total_requests"] == 1
        assert [r["book_name"] for r in body["dashboard"]["recent_requests"]] == ["Calculus"]
        assert "recent_activity" not in body["dashboard"]

def test_full_purchase_cycle(client, db_session, admin_headers, teacher, teacher_headers):
    created = client.post("/api/sheets", headers=admin_headers, json={
        "sheet_name": "Semester 1",
        "assigned_to": teacher.id,
    })
    assert created.status_code == 201
    sheet_id = created.get_json()["sheet"]["id"]

    for name, qty in (("Calculus", 4), ("Physics", 2)):
        response = client.post("/api/requests", headers=teacher_headers, json={
            "sheet_id": sheet_id,
            "book_name": name,
            "author": "Author",
            "edition": "1st",
            "quantity": qty,
        })
        assert response.status_code == 201

    compare = client.post(f"/api/sheets/{sheet_id}/compare", headers=admin_headers)
    assert compare.status_code == 200
    assert compare.get_json()["requests_moved"] == 2

    workspace = client.get("/api/prices", headers=admin_headers).get_json()
    ids = {b["book_name"]: b["id"] for b in workspace["books"]}
    calculus, physics = ids["Calculus"], ids["Physics"]

    saved = client.put("/api/prices", headers=admin_headers, json={"prices": {
        str(calculus): {"ShopA": "100", "ShopB": "85", "ShopC": 90},
        str(physics): {"ShopA": "12.50"},
    }})
    assert saved.status_code == 200

    best = client.get(f"/api/prices/{calculus}/best", headers=admin_headers).get_json()
    assert best["shop_name"] == "ShopB"
    assert best["min_price_cents"] == 8500

    finalized = client.post("/api/purchases/finalize-all", headers=admin_headers)
    assert finalized.status_code == 200
    body = finalized.get_json()
    assert body["created_count"] == 2
    assert body["total_amount_cents"] == 34000 + 2500
    assert body["total_amount"] == "365.00"
    assert body["completed_sheet_ids"] == [sheet_id]
    assert db_session.get(PurchaseSheet, sheet_id).status == "completed"

    closed = client.post("/api/purchases/close-cycle", headers=admin_headers)
    assert closed.status_code == 200
    cycle = closed.get_json()["cycle"]
    assert cycle["sheets_archived"] == 1
    assert cycle["requests_archived"] == 2
    assert cycle["purchases_archived"] == 2
    assert FinalizedPurchase.query.count() == 0

    history = client.get("/api/history", headers=admin_headers).get_json()["cycles"]
    assert [c["cycle_id"] for c in history] == [cycle["cycle_id"]]
    assert history[0]["sheet_names"] == ["Semester 1"]

    detail = client.get(f"/api/history/{cycle['cycle_id']}", headers=admin_headers).get_json()
    assert detail["total_amount"] == "365.00"
    assert sorted(p["book_name"] for p in detail["purchases"]) == ["Calculus", "Physics"]

    again = client.post("/api/purchases/close-cycle", headers=admin_headers)
    assert again.status_code == 200
    assert again.get_json()["cycle"]["sheets_archived"] == 0
    assert again.get_json()["cycle"]["purchases_archived"] == 0
    assert [c["cycle_id"] for c in client.get("/api/history", headers=admin_headers).get_json()["cycles"]] == [cycle["cycle_id"]]


def test_move_back_via_api(client, admin, admin_headers, teacher, comparing_sheet):
    book = add_request(comparing_sheet, teacher, quantity=2)
    client.put("/api/prices", headers=admin_headers, json={"book_ids": [book.id], "prices": {str(book.id): {"A": 5}}})
    purchase = client.post("/api/purchases/finalize", headers=admin_headers, json={"book_ids": [book.id]})
    purchase_id = purchase.get_json()["purchases"][0]["id"]

    response = client.post(f"/api/purchases/{purchase_id}/move-back", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["price_comparison"]["shop_name"] == "A"
    assert FinalizedPurchase.query.count() == 0


def test_finalize_without_prices_is_400(client, admin_headers, teacher, comparing_sheet):
    book = add_request(comparing_sheet, teacher)

    response = client.post("/api/purchases/finalize", headers=admin_headers, json={"book_ids": [book.id]})

    assert response.status_code == 400
    assert "error" in response.get_json()


def test_unknown_sheet_is_404(client, admin_headers):
    assert client.post("/api/sheets/9999/compare", headers=admin_headers).status_code == 404


def test_health(client, db_session):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["checks"]["database"]["status"] == "healthy"


def test_departments_are_public(client, db_session):
    departments = client.get("/api/departments").get_json()["departments"]
    assert {"value": "information_technology", "label": "Information Technology"} in departments
