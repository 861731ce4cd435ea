"""
Tests for feature-gated endpoints: authentication, plan gating, and
ownership (IDOR) checks on custom fields and export.

Checks are ordered: 401 without a session, then 403 with an upgrade hint
when the plan lacks the feature, and only then the owner-scoped operation.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest

from ledgerly.api.dependencies import require_feature
from ledgerly.db.repositories.custom_field_repo import CustomFieldRepository
from ledgerly.db.repositories.subscription_repo import SubscriptionRepository

FIELDS_URL = "/api/custom-fields"


async def _set_plan(session_factory, user_id: uuid.UUID, plan: str) -> None:
    async with session_factory() as session:
        await SubscriptionRepository(session).upsert(user_id, plan=plan, status="active")
        await session.commit()


async def _create_field(client, headers, name="Loyalty Tier", field_type="select", **extra):
    return await client.post(
        FIELDS_URL,
        json={"name": name, "field_type": field_type, "options": ["gold", "silver"], **extra},
        headers=headers,
    )


@pytest.fixture
async def pro_user(session_factory, user_id):
    await _set_plan(session_factory, user_id, "pro")
    return user_id


@pytest.fixture
async def pro_other_user(session_factory, other_user_id):
    await _set_plan(session_factory, other_user_id, "pro")
    return other_user_id


# ─── Authentication ──────────────────────────────────────────


class TestAuthenticationRequired:
    @pytest.mark.parametrize(
        "method,url",
        [
            ("GET", FIELDS_URL),
            ("POST", FIELDS_URL),
            ("PATCH", FIELDS_URL),
            ("DELETE", FIELDS_URL),
            ("GET", "/api/export"),
            ("POST", "/api/export"),
            ("GET", "/api/customers"),
            ("GET", "/api/transactions"),
            ("GET", "/api/dashboard/stats"),
            ("GET", "/api/user-profiles"),
            ("PATCH", "/api/user-profiles"),
            ("POST", "/api/user-profiles/onboarding"),
            ("GET", "/api/config"),
        ],
    )
    async def test_returns_401_without_token(self, client, method, url):
        response = await client.request(method, url, json={})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["WWW-Authenticate"] == "Bearer"


# ─── Plan Gating ─────────────────────────────────────────────


class TestFeatureGating:
    async def test_free_user_gets_403_on_custom_fields(self, client, auth_headers):
        response = await client.get(FIELDS_URL, headers=auth_headers)

        assert response.status_code == 403
        body = response.json()
        assert body["upgradeRequired"] == "pro"
        assert "pro subscription" in body["error"]

    async def test_free_user_cannot_create_field(self, client, auth_headers):
        response = await _create_field(client, auth_headers)
        assert response.status_code == 403

    async def test_gate_runs_before_body_validation(self, client, auth_headers):
        response = await client.post(FIELDS_URL, json={}, headers=auth_headers)
        assert response.status_code == 403

    async def test_free_user_gets_403_on_export(self, client, auth_headers):
        response = await client.post(
            "/api/export", json={"format": "csv", "type": "customers"}, headers=auth_headers
        )
        assert response.status_code == 403
        assert response.json()["upgradeRequired"] == "pro"

    async def test_basic_plan_still_gated(self, client, auth_headers, session_factory, user_id):
        await _set_plan(session_factory, user_id, "basic")
        response = await client.get(FIELDS_URL, headers=auth_headers)
        assert response.status_code == 403

    async def test_canceled_subscription_reverted_to_free_is_gated(
        self, client, auth_headers, session_factory, user_id
    ):
        async with session_factory() as session:
            await SubscriptionRepository(session).upsert(
                user_id, plan="free", status="canceled", stripe_subscription_id=None
            )
            await session.commit()
        response = await client.get(FIELDS_URL, headers=auth_headers)
        assert response.status_code == 403

    async def test_export_availability_reports_plan(self, client, auth_headers):
        response = await client.get("/api/export", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"available": False, "plan": "free", "upgradeRequired": "pro"}

    async def test_export_availability_for_pro(self, client, auth_headers, pro_user):
        response = await client.get("/api/export", headers=auth_headers)
        assert response.json() == {"available": True, "plan": "pro", "upgradeRequired": None}

    def test_unknown_feature_name_fails_at_definition(self):
        with pytest.raises(ValueError):
            require_feature("teleportation")


# ─── Custom Field CRUD ───────────────────────────────────────


class TestCustomFieldCrud:
    async def test_create_list_update_delete(self, client, auth_headers, pro_user):
        created = await _create_field(client, auth_headers)
        assert created.status_code == 201
        field = created.json()["field"]
        assert field["slug"] == "loyalty_tier"
        assert field["field_type"] == "select"
        assert field["options"] == ["gold", "silver"]

        listed = await client.get(FIELDS_URL, headers=auth_headers)
        assert [f["id"] for f in listed.json()["fields"]] == [field["id"]]

        updated = await client.patch(
            FIELDS_URL,
            json={"id": field["id"], "name": "Tier", "is_required": True},
            headers=auth_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["field"]["name"] == "Tier"
        assert updated.json()["field"]["is_required"] is True
        assert updated.json()["field"]["slug"] == "loyalty_tier"

        deleted = await client.request(
            "DELETE", FIELDS_URL, json={"id": field["id"]}, headers=auth_headers
        )
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True}
        assert (await client.get(FIELDS_URL, headers=auth_headers)).json() == {"fields": []}

    async def test_duplicate_slug_rejected(self, client, auth_headers, pro_user):
        assert (await _create_field(client, auth_headers, name="Loyalty Tier")).status_code == 201

        response = await _create_field(client, auth_headers, name="loyalty-tier!")

        assert response.status_code == 400
        assert response.json() == {"error": "A field with this name already exists"}

    async def test_unique_constraint_race_maps_to_400(self, client, auth_headers, pro_user):
        assert (await _create_field(client, auth_headers, name="Loyalty Tier")).status_code == 201

        # Simulate a concurrent create that passed the pre-check too
        with patch.object(CustomFieldRepository, "slug_exists", AsyncMock(return_value=False)):
            response = await _create_field(client, auth_headers, name="Loyalty Tier")

        assert response.status_code == 400
        assert response.json() == {"error": "A field with this name already exists"}
        assert len((await client.get(FIELDS_URL, headers=auth_headers)).json()["fields"]) == 1

    async def test_same_slug_allowed_for_different_users(
        self, client, auth_headers, other_auth_headers, pro_user, pro_other_user
    ):
        assert (await _create_field(client, auth_headers)).status_code == 201
        assert (await _create_field(client, other_auth_headers)).status_code == 201

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"field_type": "text"}, "Field name is required."),
            ({"name": "   ", "field_type": "text"}, "Field name is required."),
            ({"name": "Birthday"}, "Field type is required."),
            ({"name": "Birthday", "field_type": "color"}, "Invalid field type."),
        ],
    )
    async def test_validation(self, client, auth_headers, pro_user, payload, message):
        response = await client.post(FIELDS_URL, json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": message}


# ─── Ownership (IDOR) ────────────────────────────────────────


class TestOwnership:
    async def test_cannot_update_another_users_field(
        self, client, auth_headers, other_auth_headers, pro_user, pro_other_user
    ):
        field_id = (await _create_field(client, auth_headers)).json()["field"]["id"]

        response = await client.patch(
            FIELDS_URL, json={"id": field_id, "name": "Hijacked"}, headers=other_auth_headers
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Field not found or access denied."}
        fields = (await client.get(FIELDS_URL, headers=auth_headers)).json()["fields"]
        assert fields[0]["name"] == "Loyalty Tier"

    async def test_cannot_delete_another_users_field(
        self, client, auth_headers, other_auth_headers, pro_user, pro_other_user
    ):
        field_id = (await _create_field(client, auth_headers)).json()["field"]["id"]

        response = await client.request(
            "DELETE", FIELDS_URL, json={"id": field_id}, headers=other_auth_headers
        )

        assert response.status_code == 404
        assert len((await client.get(FIELDS_URL, headers=auth_headers)).json()["fields"]) == 1

    async def test_other_users_fields_are_not_listed(
        self, client, auth_headers, other_auth_headers, pro_user, pro_other_user
    ):
        await _create_field(client, auth_headers)
        response = await client.get(FIELDS_URL, headers=other_auth_headers)
        assert response.json() == {"fields": []}

    async def test_missing_field_is_404(self, client, auth_headers, pro_user):
        response = await client.patch(
            FIELDS_URL, json={"id": str(uuid.uuid4()), "name": "X"}, headers=auth_headers
        )
        assert response.status_code == 404
