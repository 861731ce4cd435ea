"""
Tests for the user profile and config endpoints.

Runs against the real application with an in-memory SQLite database.
"""

import pytest

from ledgerly.db.repositories.config_repo import ConfigRepository

PROFILE_URL = "/api/user-profiles"


async def _set_config(session_factory, key, value) -> None:
    async with session_factory() as session:
        await ConfigRepository(session).set_value(key, value)
        await session.commit()


# ─── User Profiles ───────────────────────────────────────────


class TestUserProfiles:
    async def test_no_profile_returns_null(self, client, auth_headers):
        response = await client.get(PROFILE_URL, headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"profile": None}

    async def test_create_applies_defaults(self, client, auth_headers, user_id):
        response = await client.post(PROFILE_URL, json={"shop_name": "  Corner Shop "}, headers=auth_headers)

        assert response.status_code == 201
        profile = response.json()["profile"]
        assert profile["id"] == str(user_id)
        assert profile["shop_name"] == "Corner Shop"
        assert profile["currency"] == "TRY"
        assert profile["language"] == "en"
        assert profile["onboarding_completed"] is False

        fetched = await client.get(PROFILE_URL, headers=auth_headers)
        assert fetched.json()["profile"]["shop_name"] == "Corner Shop"

    async def test_create_twice_is_rejected(self, client, auth_headers):
        assert (await client.post(PROFILE_URL, json={}, headers=auth_headers)).status_code == 201

        response = await client.post(PROFILE_URL, json={}, headers=auth_headers)

        assert response.status_code == 400
        assert "already exists" in response.json()["error"]

    async def test_patch_changes_only_supplied_fields(self, client, auth_headers):
        await client.post(PROFILE_URL, json={"shop_name": "Corner Shop", "phone": "555"}, headers=auth_headers)

        response = await client.patch(PROFILE_URL, json={"currency": "usd"}, headers=auth_headers)

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["currency"] == "USD"
        assert profile["shop_name"] == "Corner Shop"
        assert profile["phone"] == "555"

    async def test_patch_without_profile_is_404(self, client, auth_headers):
        response = await client.patch(PROFILE_URL, json={"shop_name": "x"}, headers=auth_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Profile not found"}

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"currency": "LIRA"}, "Currency must be a 3-letter ISO 4217 code."),
            ({"currency": "U1D"}, "Currency must be a 3-letter ISO 4217 code."),
            ({"language": "x"}, "Invalid language code."),
        ],
    )
    async def test_validation(self, client, auth_headers, payload, message):
        response = await client.post(PROFILE_URL, json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": message}

    async def test_profiles_are_per_user(self, client, auth_headers, other_auth_headers):
        await client.post(PROFILE_URL, json={"shop_name": "Mine"}, headers=auth_headers)

        response = await client.get(PROFILE_URL, headers=other_auth_headers)
        assert response.json() == {"profile": None}

        patched = await client.patch(PROFILE_URL, json={"shop_name": "Theirs"}, headers=other_auth_headers)
        assert patched.status_code == 404
        mine = await client.get(PROFILE_URL, headers=auth_headers)
        assert mine.json()["profile"]["shop_name"] == "Mine"


class TestOnboarding:
    async def test_creates_profile_when_missing(self, client, auth_headers):
        response = await client.post(
            f"{PROFILE_URL}/onboarding",
            json={"currency": "eur", "language": "de", "industry": "Grocery"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert (profile["currency"], profile["language"], profile["industry"]) == ("EUR", "de", "Grocery")
        assert profile["onboarding_completed"] is True

    async def test_updates_existing_profile(self, client, auth_headers):
        await client.post(PROFILE_URL, json={"shop_name": "Corner Shop"}, headers=auth_headers)

        response = await client.post(
            f"{PROFILE_URL}/onboarding",
            json={"currency": "TRY", "language": "tr", "industry": "Pharmacy"},
            headers=auth_headers,
        )

        profile = response.json()["profile"]
        assert profile["shop_name"] == "Corner Shop"
        assert profile["onboarding_completed"] is True

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"language": "en", "industry": "Retail"}, "Currency is required."),
            ({"currency": "USD", "industry": "Retail"}, "Language is required."),
            ({"currency": "USD", "language": "en", "industry": "  "}, "Industry is required."),
        ],
    )
    async def test_required_fields(self, client, auth_headers, payload, message):
        response = await client.post(f"{PROFILE_URL}/onboarding", json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": message}


# ─── Config ──────────────────────────────────────────────────


class TestConfigEndpoint:
    async def test_single_key_is_decoded(self, client, auth_headers, session_factory):
        await _set_config(session_factory, "app.support_email", '"help@ledgerly.test"')

        response = await client.get("/api/config", params={"key": "app.support_email"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"value": "help@ledgerly.test"}

    async def test_missing_key_is_null(self, client, auth_headers):
        response = await client.get("/api/config", params={"key": "nope"}, headers=auth_headers)
        assert response.json() == {"value": None}

    async def test_prefix_lookup(self, client, auth_headers, session_factory):
        await _set_config(session_factory, "plans.pro.customer_limit", 750)
        await _set_config(session_factory, "plans.pro.features", '{"whiteLabel": true}')
        await _set_config(session_factory, "plansx.other", 1)

        response = await client.get("/api/config", params={"prefix": "plans.pro."}, headers=auth_headers)

        assert response.json() == {
            "configs": {
                "plans.pro.customer_limit": 750,
                "plans.pro.features": {"whiteLabel": True},
            }
        }

    async def test_prefix_wildcards_are_literal(self, client, auth_headers, session_factory):
        await _set_config(session_factory, "plans.free.customer_limit", 5)
        response = await client.get("/api/config", params={"prefix": "%"}, headers=auth_headers)
        assert response.json() == {"configs": {}}

    async def test_plan_config_defaults(self, client, auth_headers):
        response = await client.get("/api/config", params={"plan": "enterprise"}, headers=auth_headers)

        config = response.json()["config"]
        assert config["customerLimit"] is None
        assert config["features"]["white_label"] is True
        assert "max_customers" not in config["features"]

    async def test_plan_config_applies_overrides(self, client, auth_headers, session_factory):
        await _set_config(session_factory, "plans.free.customer_limit", 20)
        await _set_config(session_factory, "plans.free.features", {"dataExport": True})

        response = await client.get("/api/config", params={"plan": "free"}, headers=auth_headers)

        config = response.json()["config"]
        assert config["customerLimit"] == 20
        assert config["features"]["data_export"] is True

    async def test_invalid_plan(self, client, auth_headers):
        response = await client.get("/api/config", params={"plan": "platinum"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid plan. Must be free, basic, pro, or enterprise."}

    async def test_no_parameters(self, client, auth_headers):
        response = await client.get("/api/config", headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Please provide key, prefix, or plan parameter"}
