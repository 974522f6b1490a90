import pytest
from asgi_lifespan import LifespanManager
from fastapi import APIRouter, Depends
from httpx import ASGITransport, AsyncClient
from craftlink.auth.dependencies import optional_current_user, require_provider, require_role
from craftlink.common.utils import success_response
from craftlink.main import create_app
from craftlink.schema.full_schema import Provider, Role, ServiceType, Users

url_prefix = "/api/v1"

current_user_payload = {"email": "maker@example.com", "password": "Secure123"}


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def test_me(ac_client: AsyncClient):
    signed_up = await ac_client.post(f"{url_prefix}/auth/register/email", json=current_user_payload)
    access = signed_up.json()["data"]["tokens"]["accessToken"]

    resp = await ac_client.get(f"{url_prefix}/auth/me", headers=_bearer(access))
    assert resp.status_code == 200
    user = resp.json()["data"]
    assert user["email"] == current_user_payload["email"]
    assert user["id"] == signed_up.json()["data"]["user"]["id"]
    assert "passwordHash" not in user and "password_hash" not in user


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "},
                                     {"Authorization": "Token xyz"}])
async def test_me_without_bearer(ac_client: AsyncClient, headers):
    resp = await ac_client.get(f"{url_prefix}/auth/me", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "No authentication token provided"


async def test_me_with_bad_tokens(ac_client: AsyncClient):
    signed_up = await ac_client.post(f"{url_prefix}/auth/register/email", json=current_user_payload)
    refresh = signed_up.json()["data"]["tokens"]["refreshToken"]

    for token in ("garbage", refresh):
        resp = await ac_client.get(f"{url_prefix}/auth/me", headers=_bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "INVALID_TOKEN"


async def test_me_for_deleted_user(ac_client: AsyncClient, store):
    signed_up = await ac_client.post(f"{url_prefix}/auth/register/email", json=current_user_payload)
    data = signed_up.json()["data"]
    await store.delete(Users, data["user"]["id"])

    resp = await ac_client.get(f"{url_prefix}/auth/me", headers=_bearer(data["tokens"]["accessToken"]))
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "User not found"


# ------------------------------------------------------------------ role / provider gates

@pytest.fixture
async def gated(settings):
    app = create_app(settings)
    router = APIRouter()

    @router.get("/admin-only")
    async def admin_only(user: Users = Depends(require_role(Role.ADMIN))):
        return success_response({"id": user.id})

    @router.get("/provider-only")
    async def provider_only(provider: Provider = Depends(require_provider)):
        return success_response({"slug": provider.slug})

    @router.get("/maybe")
    async def maybe(user=Depends(optional_current_user)):
        return success_response({"anonymous": user is None})

    app.include_router(router, prefix="/gated")

    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac, app.state.auth_service, app.state.store


async def _user_with_token(service, store, role: Role):
    user = await store.create(Users(email=f"{role.value.lower()}@example.com", role=role))
    return user, service.tokens.generate_access_token(user.id, user.role)


async def test_role_gate(gated):
    ac, service, store = gated
    _, admin_token = await _user_with_token(service, store, Role.ADMIN)
    _, customer_token = await _user_with_token(service, store, Role.CUSTOMER)

    assert (await ac.get("/gated/admin-only", headers=_bearer(admin_token))).status_code == 200

    denied = await ac.get("/gated/admin-only", headers=_bearer(customer_token))
    assert denied.status_code == 403
    assert denied.json()["error"] == {"code": "FORBIDDEN", "message": "Insufficient permissions"}

    assert (await ac.get("/gated/admin-only")).status_code == 401


async def test_provider_gate(gated):
    ac, service, store = gated
    user, token = await _user_with_token(service, store, Role.PROVIDER)

    denied = await ac.get("/gated/provider-only", headers=_bearer(token))
    assert denied.status_code == 403
    assert denied.json()["error"]["message"] == "Provider profile required"

    await store.create(Provider(
        user_id=user.id, business_name="Teak Works", slug="teak-works",
        service_type=ServiceType.FURNITURE_MAKER, city="Jaipur", whatsapp_number="9876543210",
    ))
    allowed = await ac.get("/gated/provider-only", headers=_bearer(token))
    assert allowed.status_code == 200
    assert allowed.json()["data"] == {"slug": "teak-works"}


async def test_optional_auth(gated):
    ac, service, store = gated
    _, token = await _user_with_token(service, store, Role.CUSTOMER)

    assert (await ac.get("/gated/maybe")).json()["data"] == {"anonymous": True}
    assert (await ac.get("/gated/maybe", headers=_bearer("garbage"))).json()["data"] == {"anonymous": True}
    assert (await ac.get("/gated/maybe", headers=_bearer(token))).json()["data"] == {"anonymous": False}
