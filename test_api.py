"""
Tests for the HTTP API.

Requests go through aiohttp's in-process test server; each test drives
its own event loop with asyncio.run.
"""

import asyncio
import base64

import pytest
from aiohttp import test_utils

from authserver.api import (
    create_app,
    encode_token,
    parse_basic_header,
    parse_bearer_header,
)
from authserver.auth import WellKnownIDs
from authserver.config import Settings


IDS = WellKnownIDs()


def basic(name, secret):
    return "Basic " + base64.b64encode(f"{name}:{secret}".encode()).decode()


def bearer(token_id):
    return "Bearer " + encode_token(token_id)


def run_with_client(manager, scenario, settings=None):
    """Run an async scenario against a test client bound to manager."""
    async def runner():
        app = create_app(manager, settings or Settings())
        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            return await scenario(client)

    return asyncio.run(runner())


class TestHeaders:
    """Authorization header parsing."""

    def test_basic(self):
        assert parse_basic_header(basic("admin", "s3cret")) == ("admin", "s3cret")

    def test_basic_secret_with_colon(self):
        assert parse_basic_header(basic("admin", "a:b:c")) == ("admin", "a:b:c")

    def test_basic_case_insensitive_scheme(self):
        header = "basic " + base64.b64encode(b"admin:x").decode()
        assert parse_basic_header(header) == ("admin", "x")

    @pytest.mark.parametrize("header", [
        None,
        "",
        "Basic",
        "Basic !!!not-base64!!!",
        "Basic " + base64.b64encode(b"no-colon").decode(),
        "Basic " + base64.b64encode(b":secret").decode(),
        "Bearer " + base64.b64encode(b"admin:x").decode(),
    ])
    def test_basic_malformed(self, header):
        assert parse_basic_header(header) is None

    def test_bearer(self):
        assert parse_bearer_header(bearer("tok-123")) == "tok-123"

    @pytest.mark.parametrize("header", [None, "", "Bearer ", "Bearer %%%", "Basic dG9r"])
    def test_bearer_malformed(self, header):
        assert parse_bearer_header(header) is None


class TestTokenEndpoint:

    def test_hello(self, manager):
        async def scenario(client):
            resp = await client.get("/")
            return resp.status, await resp.text()

        status, text = run_with_client(manager, scenario)
        assert status == 200
        assert text.startswith("Hello")

    def test_client_credentials(self, manager, admin_secret):
        async def scenario(client):
            resp = await client.post("/token/client", headers={"Authorization": basic("admin", admin_secret)})
            return resp.status, await resp.json()

        status, body = run_with_client(manager, scenario)

        assert status == 200
        assert body["token_type"] == "Bearer"
        assert body["expires_in"] == "3600"
        token_id = base64.b64decode(body["access_token"]).decode()
        assert manager.context_for_token(token_id).id == IDS.admin_user_id

    def test_client_credentials_form(self, manager, admin_secret):
        async def scenario(client):
            resp = await client.post(
                "/token/client",
                data={"client_id": "admin", "client_secret": admin_secret},
            )
            return resp.status

        assert run_with_client(manager, scenario) == 200

    def test_wrong_secret(self, manager):
        async def scenario(client):
            resp = await client.post("/token/client", headers={"Authorization": basic("admin", "wrong")})
            return resp.status, await resp.json()

        status, body = run_with_client(manager, scenario)
        assert status == 401
        assert body["status"] == 401
        assert body["message"].startswith("Error: ")

    def test_missing_credentials(self, manager):
        async def scenario(client):
            resp = await client.post("/token/client")
            return resp.status

        assert run_with_client(manager, scenario) == 401


class TestAuthorize:

    def test_grants_for_token(self, manager, admin_secret):
        _, token = manager.login("admin", admin_secret)

        async def scenario(client):
            resp = await client.get("/oauth/authorize", headers={"Authorization": bearer(token.token)})
            return resp.status, await resp.json()

        status, body = run_with_client(manager, scenario)

        assert status == 200
        assert body["name"] == "admin"
        assert body["resources"][0]["name"] == "system"
        assert body["resources"][0]["roles"][0]["name"] == "sys_admin"

    def test_superseded_token(self, manager, admin_secret):
        _, old = manager.login("admin", admin_secret)
        manager.login("admin", admin_secret)

        async def scenario(client):
            resp = await client.get("/oauth/authorize", headers={"Authorization": bearer(old.token)})
            return resp.status

        assert run_with_client(manager, scenario) == 401

    def test_missing_bearer(self, manager):
        async def scenario(client):
            resp = await client.get("/oauth/authorize")
            return resp.status

        assert run_with_client(manager, scenario) == 401


class TestManagement:

    def test_admin_flow(self, manager, admin_secret):
        _, token = manager.login("admin", admin_secret)
        auth = {"Authorization": bearer(token.token)}

        async def scenario(client):
            user = await client.post("/user", json={"name": "u1", "secret": "pw"}, headers=auth)
            resource = await client.post("/resource", json={"name": "r1"}, headers=auth)
            role = await client.post("/role", json={"name": "reader"}, headers=auth)
            ids = {
                "user_id": (await user.json())["id"],
                "resource_id": (await resource.json())["id"],
                "role_id": (await role.json())["id"],
            }
            grant = await client.post("/grant", json=ids, headers=auth)
            duplicate = await client.post("/grant", json=ids, headers=auth)
            listing = await client.get("/grant", headers=auth)
            revoke = await client.delete("/grant", json=ids, headers=auth)
            return (
                [user.status, resource.status, role.status, grant.status],
                duplicate.status,
                len(await listing.json()),
                revoke.status,
            )

        created, duplicate, listed, revoked = run_with_client(manager, scenario)

        assert created == [201, 201, 201, 201]
        assert duplicate == 409
        assert listed == 2
        assert revoked == 204

    def test_user_body_never_has_hash(self, manager, admin_secret):
        _, token = manager.login("admin", admin_secret)

        async def scenario(client):
            resp = await client.post(
                "/user",
                json={"name": "u1", "secret": "pw"},
                headers={"Authorization": bearer(token.token)},
            )
            return await resp.json()

        body = run_with_client(manager, scenario)
        assert "secret_hash" not in body
        assert "secret" not in body

    def test_unprivileged_user_forbidden(self, manager, make_user):
        make_user("u1", "pw")
        _, token = manager.login("u1", "pw")

        async def scenario(client):
            resp = await client.post(
                "/user",
                json={"name": "u2", "secret": "pw"},
                headers={"Authorization": bearer(token.token)},
            )
            return resp.status

        assert run_with_client(manager, scenario) == 403
        assert manager.db.get_user_by_name("u2") is None

    def test_missing_reference(self, manager, admin_secret):
        _, token = manager.login("admin", admin_secret)

        async def scenario(client):
            resp = await client.post(
                "/grant",
                json={"user_id": "missing", "resource_id": IDS.system_resource_id, "role_id": IDS.system_admin_role_id},
                headers={"Authorization": bearer(token.token)},
            )
            return resp.status

        assert run_with_client(manager, scenario) == 404

    def test_bad_body(self, manager, admin_secret):
        _, token = manager.login("admin", admin_secret)

        async def scenario(client):
            resp = await client.post(
                "/user",
                json={"name": "", "secret": "pw"},
                headers={"Authorization": bearer(token.token)},
            )
            return resp.status

        assert run_with_client(manager, scenario) == 400

    def test_no_token(self, manager):
        async def scenario(client):
            resp = await client.get("/user")
            return resp.status

        assert run_with_client(manager, scenario) == 401

    def test_storage_failure_is_generic_500(self, manager, admin_secret, monkeypatch):
        from authserver.auth import StorageError

        _, token = manager.login("admin", admin_secret)

        def broken(*args, **kwargs):
            raise StorageError("list users", RuntimeError("/secret/path/system.db"))

        monkeypatch.setattr(manager.db, "list_users", broken)

        async def scenario(client):
            resp = await client.get("/user", headers={"Authorization": bearer(token.token)})
            return resp.status, await resp.json()

        status, body = run_with_client(manager, scenario)
        assert status == 500
        assert "/secret/path" not in body["message"]


class TestCors:

    def test_allowed_origin(self, manager):
        settings = Settings(allowed_origins=["https://app.test"])

        async def scenario(client):
            allowed = await client.get("/", headers={"Origin": "https://app.test"})
            other = await client.get("/", headers={"Origin": "https://evil.test"})
            return (
                allowed.headers.get("Access-Control-Allow-Origin"),
                other.headers.get("Access-Control-Allow-Origin"),
            )

        allowed, other = run_with_client(manager, scenario, settings)
        assert allowed == "https://app.test"
        assert other is None

    def test_preflight(self, manager):
        async def scenario(client):
            resp = await client.options("/token/client", headers={"Origin": "https://x.test"})
            return resp.status, resp.headers.get("Access-Control-Allow-Methods")

        status, methods = run_with_client(manager, scenario)
        assert status == 200
        assert "POST" in methods

    def test_wildcard_has_no_credentials(self, manager):
        async def scenario(client):
            resp = await client.get("/", headers={"Origin": "https://any.test"})
            return (
                resp.headers.get("Access-Control-Allow-Origin"),
                resp.headers.get("Access-Control-Allow-Credentials"),
            )

        origin, credentials = run_with_client(manager, scenario, Settings(allowed_origins=["*"]))
        assert origin == "*"
        assert credentials is None

    def test_listed_origin_gets_credentials(self, manager):
        settings = Settings(allowed_origins=["https://app.test"])

        async def scenario(client):
            resp = await client.get("/", headers={"Origin": "https://app.test"})
            return resp.headers.get("Access-Control-Allow-Credentials")

        assert run_with_client(manager, scenario, settings) == "true"
