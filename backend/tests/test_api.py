"""HTTP tests through the FastAPI app, backed by the memory repository"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.dependencies import get_repository
from app.main import app
from app.security import create_access_token, get_password_hash


def auth(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest_asyncio.fixture
async def client(repo):
    app.dependency_overrides[get_repository] = lambda: repo
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def pilot(make_user):
    return await make_user(
        "pilot@starledger.io", balance=100, hashed_password=get_password_hash("hunter2hunter2")
    )


class TestIdentity:

    @pytest.mark.asyncio
    async def test_health(self, client) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_register_and_me(self, client) -> None:
        response = await client.post("/identity/register", json={
            "email": "new@starledger.io",
            "password": "correct-horse",
            "starCitizenHandle": "NewPilot",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "new@starledger.io"
        assert body["user"]["userName"] == "new@starledger.io"

        me = await client.get("/identity/me", headers={"Authorization": f"Bearer {body['accessToken']}"})
        assert me.status_code == 200
        assert me.json()["starCitizenHandle"] == "NewPilot"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client, pilot) -> None:
        response = await client.post("/identity/register", json={
            "email": "pilot@starledger.io", "password": "correct-horse",
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_login_sets_session_cookie(self, client, pilot) -> None:
        response = await client.post("/identity/login", data={
            "username": "pilot@starledger.io", "password": "hunter2hunter2",
        })

        assert response.status_code == 200
        assert "starledger_session" in response.cookies
        # cookie alone authenticates
        balance = await client.get(f"/users/{pilot.id}/balance")
        assert balance.status_code == 200

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, pilot) -> None:
        response = await client.post("/identity/login", data={
            "username": "pilot@starledger.io", "password": "wrong-password",
        })

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_clears_session(self, client, pilot) -> None:
        await client.post("/identity/login", data={
            "username": "pilot@starledger.io", "password": "hunter2hunter2",
        })

        response = await client.post("/identity/logout")

        assert response.status_code == 204
        assert (await client.get("/identity/me")).status_code == 401

    @pytest.mark.asyncio
    async def test_update_claims_keeps_existing_types(self, client, pilot, repo) -> None:
        await repo.add_roles(pilot.id, ["Developer"])
        await repo.add_claim(pilot.id, "StarCitizenHandle", "Maverick")

        response = await client.post(
            f"/identity/{pilot.id}/claims",
            json={"claims": {"StarCitizenHandle": "Goose", "Organization": "abc"}},
            headers=auth(pilot.id),
        )

        assert response.status_code == 200
        assert response.json()["claims"] == {"StarCitizenHandle": "Maverick", "Organization": "abc"}

    @pytest.mark.asyncio
    async def test_anonymous_is_rejected(self, client, pilot) -> None:
        response = await client.get("/users")

        assert response.status_code == 401


class TestUsers:

    @pytest.mark.asyncio
    async def test_balance_update(self, client, pilot, repo) -> None:
        response = await client.post(
            f"/users/{pilot.id}/balance/history",
            json={"updateAmount": 50, "updateType": "Add"},
            headers=auth(pilot.id),
        )

        assert response.status_code == 201
        assert response.json() == {"userId": str(pilot.id), "balance": 150, "historyRecorded": True}

        history = await client.get(f"/users/{pilot.id}/balance/history", headers=auth(pilot.id))
        assert [row["balance"] for row in history.json()] == [150]

    @pytest.mark.asyncio
    async def test_update_alias_sets_balance(self, client, pilot) -> None:
        response = await client.post(
            f"/users/{pilot.id}/balance/history",
            json={"updateAmount": 5, "updateType": "Update"},
            headers=auth(pilot.id),
        )

        assert response.json()["balance"] == 5

    @pytest.mark.asyncio
    async def test_overdraft_is_unprocessable(self, client, pilot) -> None:
        response = await client.post(
            f"/users/{pilot.id}/balance/history",
            json={"updateAmount": 150, "updateType": "Subtract"},
            headers=auth(pilot.id),
        )

        assert response.status_code == 422
        assert response.json()["reason"] == "NegativeBalance"
        balance = await client.get(f"/users/{pilot.id}/balance", headers=auth(pilot.id))
        assert balance.json()["balance"] == 100

    @pytest.mark.asyncio
    async def test_amount_beyond_bigint_is_rejected(self, client, pilot) -> None:
        response = await client.post(
            f"/users/{pilot.id}/balance/history",
            json={"updateAmount": 2**63, "updateType": "Add"},
            headers=auth(pilot.id),
        )

        assert response.status_code == 422
        balance = await client.get(f"/users/{pilot.id}/balance", headers=auth(pilot.id))
        assert balance.json()["balance"] == 100

    @pytest.mark.asyncio
    async def test_add_past_bigint_max(self, client, pilot) -> None:
        response = await client.post(
            f"/users/{pilot.id}/balance/history",
            json={"updateAmount": 2**63 - 1, "updateType": "Add"},
            headers=auth(pilot.id),
        )

        assert response.status_code == 422
        assert response.json()["reason"] == "BalanceOverflow"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, pilot) -> None:
        response = await client.get(f"/users/{uuid.uuid4()}", headers=auth(pilot.id))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_user(self, client, pilot, make_user) -> None:
        other = await make_user("other@starledger.io")

        response = await client.delete(f"/users/{other.id}", headers=auth(pilot.id))

        assert response.status_code == 204
        assert (await client.get(f"/users/{other.id}", headers=auth(pilot.id))).status_code == 404

    @pytest.mark.asyncio
    async def test_reconcile_requires_developer(self, client, pilot, repo) -> None:
        url = f"/users/{pilot.id}/balance/history/reconcile"

        assert (await client.post(url, headers=auth(pilot.id))).status_code == 403

        await repo.add_roles(pilot.id, ["Developer"])
        response = await client.post(url, headers=auth(pilot.id))
        assert response.status_code == 200
        assert response.json()["balance"] == 100


class TestResources:

    @pytest.mark.asyncio
    async def test_catalog_and_holdings(self, client, pilot, repo) -> None:
        await repo.add_roles(pilot.id, ["Developer"])
        catalog = await client.post(
            "/resources",
            json=[{"name": "Iron", "code": "IRON", "type": "Metal", "priceBuy": 1, "priceSell": 2}],
            headers=auth(pilot.id),
        )
        assert catalog.status_code == 200
        resource_id = catalog.json()[0]["resourceId"]

        attach = await client.put(
            f"/userResources/{pilot.id}/{resource_id}", json={"quantity": 3}, headers=auth(pilot.id)
        )
        assert attach.status_code == 200

        update = await client.post(
            f"/userResources/{pilot.id}",
            json={"resourceId": resource_id, "quantity": 5, "updateType": "Subtract"},
            headers=auth(pilot.id),
        )
        assert update.status_code == 422
        assert update.json()["reason"] == "InsufficientQuantity"

        update = await client.post(
            f"/userResources/{pilot.id}",
            json={"resourceId": resource_id, "quantity": 2, "updateType": "Add"},
            headers=auth(pilot.id),
        )
        assert update.status_code == 201
        assert update.json()["quantity"] == 5

        history = await client.get(f"/userResources/{pilot.id}/history", headers=auth(pilot.id))
        assert [row["quantity"] for row in history.json()] == [5]

    @pytest.mark.asyncio
    async def test_catalog_update_requires_developer(self, client, pilot) -> None:
        response = await client.post(
            "/resources",
            json=[{"name": "Iron", "code": "IRON", "type": "Metal"}],
            headers=auth(pilot.id),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_nan_quantity_is_rejected(self, client, pilot, repo, make_resource) -> None:
        iron = await make_resource("IRON")
        await client.put(f"/userResources/{pilot.id}/{iron.id}", json={"quantity": 3}, headers=auth(pilot.id))

        response = await client.post(
            f"/userResources/{pilot.id}",
            content=f'{{"resourceId": {iron.id}, "quantity": NaN, "updateType": "Set"}}',
            headers={**auth(pilot.id), "Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert (await repo.get_user_resource(pilot.id, iron.id)).quantity == 3

    @pytest.mark.asyncio
    async def test_catalog_reads_are_anonymous(self, client, make_resource) -> None:
        iron = await make_resource("IRON")

        listing = await client.get("/resources")
        single = await client.get(f"/resources/{iron.id}")

        assert listing.status_code == 200
        assert [r["code"] for r in listing.json()] == ["IRON"]
        assert single.json()["resourceId"] == iron.id

    @pytest.mark.asyncio
    async def test_unknown_resource(self, client, pilot) -> None:
        response = await client.get("/resources/42", headers=auth(pilot.id))

        assert response.status_code == 404


class TestOrganizations:

    @pytest_asyncio.fixture
    async def org_id(self, client, pilot) -> str:
        response = await client.post(
            "/organizations",
            json={"createdBy": str(pilot.id), "organizationName": "Red Wing"},
            headers=auth(pilot.id),
        )
        assert response.status_code == 201
        return response.json()["organizationId"]

    @pytest.mark.asyncio
    async def test_members_and_aggregates(self, client, pilot, make_user, org_id) -> None:
        wingman = await make_user("wing@starledger.io", balance=250)

        added = await client.post(
            f"/organizations/{org_id}/user", json={"userId": str(wingman.id)}, headers=auth(pilot.id)
        )
        assert added.status_code == 200
        assert len(added.json()["users"]) == 2

        total = await client.get(f"/organizations/{org_id}/balance", headers=auth(pilot.id))
        assert total.json() == {"organizationId": org_id, "balance": 350}

        by_user = await client.get(f"/organizations/{org_id}/balanceByUser", headers=auth(pilot.id))
        assert sorted(row["balance"] for row in by_user.json()) == [100, 250]

    @pytest.mark.asyncio
    async def test_empty_aggregates_are_no_content(self, client, pilot, org_id) -> None:
        for path in ("resources", "resourcesByUser", "balance/history", "resources/history"):
            response = await client.get(f"/organizations/{org_id}/{path}", headers=auth(pilot.id))
            assert response.status_code == 204, path

    @pytest.mark.asyncio
    async def test_unknown_organization(self, client, pilot) -> None:
        response = await client.get(f"/organizations/{uuid.uuid4()}/balance", headers=auth(pilot.id))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_name(self, client, pilot) -> None:
        response = await client.post(
            "/organizations",
            json={"createdBy": str(pilot.id), "organizationName": "ab"},
            headers=auth(pilot.id),
        )

        assert response.status_code == 400
        assert "OrganizationName" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_only_owner_deletes(self, client, pilot, make_user, org_id) -> None:
        wingman = await make_user("wing@starledger.io")
        await client.post(f"/organizations/{org_id}/user", json={"userId": str(wingman.id)}, headers=auth(pilot.id))

        forbidden = await client.delete(f"/organizations/{org_id}", headers=auth(wingman.id))
        assert forbidden.status_code == 403

        deleted = await client.delete(f"/organizations/{org_id}", headers=auth(pilot.id))
        assert deleted.status_code == 204
        assert (await client.get(f"/organizations/{org_id}", headers=auth(pilot.id))).status_code == 404

    @pytest.mark.asyncio
    async def test_admin_removes_member(self, client, pilot, make_user, org_id) -> None:
        wingman = await make_user("wing@starledger.io")
        await client.post(f"/organizations/{org_id}/user", json={"userId": str(wingman.id)}, headers=auth(pilot.id))

        removed = await client.delete(f"/organizations/{org_id}/user/{wingman.id}", headers=auth(pilot.id))
        assert removed.status_code == 204

        again = await client.delete(f"/organizations/{org_id}/user/{wingman.id}", headers=auth(pilot.id))
        assert again.status_code == 404
