"""
Tests for the /admin oversight endpoints and role enforcement.

  - NPC_ADMIN can read registration statistics and the audit log
  - AUDITOR can read the audit log but not registration statistics
  - Suppliers and agency buyers get 403 on every /admin endpoint
  - Anonymous callers get 401
"""

from datetime import timedelta, timezone

import pytest

from egp_api.services.token_service import utc_now
from helpers import auth_header, buyer_payload, sign_in


class TestRegistrationStats:
    """GET /admin/registrations."""

    async def test_admin_sees_counts(self, client, admin_token, registered_supplier):
        await client.post(
            "/auth/register",
            json=buyer_payload(email="peter.wai@health.gov.pg", fullName="Peter Wai"),
        )

        response = await client.get("/admin/registrations", headers=auth_header(admin_token))
        assert response.status_code == 200
        data = response.json()
        # Seeded admin + supplier + buyer
        assert data["total"] == 3
        assert data["byRole"] == {
            "NPC_ADMIN": 1,
            "AGENCY_BUYER": 1,
            "SUPPLIER_USER": 1,
            "AUDITOR": 0,
        }
        emails = [u["email"] for u in data["recent"]]
        assert registered_supplier["email"] in emails
        assert "peter.wai@health.gov.pg" in emails
        assert all("passwordHash" not in u for u in data["recent"])

    async def test_auditor_forbidden(self, client, auditor_token):
        response = await client.get("/admin/registrations", headers=auth_header(auditor_token))
        assert response.status_code == 403
        assert response.json()["error_type"] == "permission_denied"

    async def test_supplier_forbidden(self, client, verified_supplier):
        token = await sign_in(client, verified_supplier["email"], verified_supplier["password"])
        response = await client.get("/admin/registrations", headers=auth_header(token))
        assert response.status_code == 403

    async def test_anonymous_unauthorized(self, client):
        response = await client.get("/admin/registrations")
        assert response.status_code == 401


class TestAuditLogListing:
    """GET /admin/audit-logs."""

    async def test_admin_lists_entries_newest_first(self, client, admin_token, registered_supplier):
        await client.post("/auth/verify-email", json={"token": registered_supplier["token"]})

        response = await client.get("/admin/audit-logs", headers=auth_header(admin_token))
        assert response.status_code == 200
        data = response.json()
        actions = [item["action"] for item in data["items"]]
        # The admin's own sign-in is also audited
        assert actions[0] == "EMAIL_VERIFIED"
        assert "USER_REGISTERED" in actions
        assert "USER_SIGNED_IN" in actions
        assert data["total"] == len(actions)
        assert data["page"] == 1
        assert data["pageSize"] == 20

    async def test_auditor_can_read(self, client, auditor_token):
        response = await client.get("/admin/audit-logs", headers=auth_header(auditor_token))
        assert response.status_code == 200

    async def test_filter_by_action(self, client, admin_token, registered_supplier):
        response = await client.get(
            "/admin/audit-logs",
            params={"action": "USER_REGISTERED"},
            headers=auth_header(admin_token),
        )
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["entityId"] == registered_supplier["user"]["id"]
        assert data["items"][0]["payload"]["email"] == registered_supplier["email"]

    async def test_filter_by_actor(self, client, admin_token, registered_supplier):
        response = await client.get(
            "/admin/audit-logs",
            params={"actorUserId": registered_supplier["user"]["id"]},
            headers=auth_header(admin_token),
        )
        items = response.json()["items"]
        assert items
        assert {item["actorUserId"] for item in items} == {registered_supplier["user"]["id"]}

    async def test_pagination(self, client, admin_token, registered_supplier):
        first = await client.get(
            "/admin/audit-logs", params={"pageSize": 1}, headers=auth_header(admin_token)
        )
        second = await client.get(
            "/admin/audit-logs",
            params={"pageSize": 1, "page": 2},
            headers=auth_header(admin_token),
        )
        assert len(first.json()["items"]) == 1
        assert len(second.json()["items"]) == 1
        assert first.json()["items"][0]["id"] != second.json()["items"][0]["id"]

    async def test_time_window_with_offsets(self, client, admin_token, registered_supplier):
        """Window bounds in any UTC offset select the same entries."""
        now = utc_now()
        port_moresby = timezone(timedelta(hours=10))
        honolulu = timezone(timedelta(hours=-10))

        inside = await client.get(
            "/admin/audit-logs",
            params={
                "startTime": (now - timedelta(minutes=5)).astimezone(port_moresby).isoformat(),
                "endTime": (now + timedelta(minutes=5)).astimezone(honolulu).isoformat(),
            },
            headers=auth_header(admin_token),
        )
        assert inside.status_code == 200
        actions = [item["action"] for item in inside.json()["items"]]
        assert "USER_REGISTERED" in actions

        later = await client.get(
            "/admin/audit-logs",
            params={"startTime": (now + timedelta(minutes=5)).astimezone(port_moresby).isoformat()},
            headers=auth_header(admin_token),
        )
        assert later.json()["total"] == 0

    @pytest.mark.parametrize("params", [{"page": 0}, {"pageSize": 0}, {"pageSize": 101}])
    async def test_invalid_paging(self, client, admin_token, params):
        response = await client.get(
            "/admin/audit-logs", params=params, headers=auth_header(admin_token)
        )
        assert response.status_code == 400

    async def test_buyer_forbidden(self, client, registered_buyer):
        token = await sign_in(client, registered_buyer["email"], registered_buyer["password"])
        response = await client.get("/admin/audit-logs", headers=auth_header(token))
        assert response.status_code == 403
