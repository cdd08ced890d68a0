"""
Tests for the EHR FHIR client.

Requests go to an in-process aiohttp application that stores
resources in a dict.
"""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from sdohexchange.config import EhrSettings
from sdohexchange.fhir.client import (
    FHIRBundle,
    FHIRClient,
    FHIRClientError,
    FHIRResource,
    FHIRResourceType,
    build_ehr_client,
)
from sdohexchange.fhir import profiles
from sdohexchange.fhir.profiles import add_profile, has_profile


def _fhir_app(store: dict, seen: dict) -> web.Application:
    async def read(request):
        seen["headers"].append(request.headers.copy())
        if request.match_info["rid"].startswith("deleted-"):
            return web.json_response(
                {"resourceType": "OperationOutcome", "issue": [{"code": "deleted"}]},
                status=410,
            )
        key = (request.match_info["rtype"], request.match_info["rid"])
        if key not in store:
            return web.json_response(
                {"resourceType": "OperationOutcome", "issue": [{"code": "not-found"}]},
                status=404,
            )
        return web.json_response(store[key])

    async def search(request):
        seen["queries"].append(dict(request.query))
        rtype = request.match_info["rtype"]
        page = int(request.query.get("page", "1"))
        matches = [r for (t, _), r in sorted(store.items()) if t == rtype]
        bundle = {
            "resourceType": "Bundle",
            "type": "searchset",
            "total": len(matches),
            "entry": [{"resource": r} for r in matches[page - 1:page]],
        }
        if page < len(matches):
            bundle["link"] = [
                {"relation": "next", "url": str(request.url.with_query({"page": page + 1}))}
            ]
        return web.json_response(bundle)

    async def create(request):
        body = await request.json()
        rtype = request.match_info["rtype"]
        body["id"] = f"{rtype.lower()}-{len(store) + 1}"
        store[(rtype, body["id"])] = body
        return web.json_response(body, status=201)

    async def update(request):
        body = await request.json()
        store[(request.match_info["rtype"], request.match_info["rid"])] = body
        return web.json_response(body)

    async def delete(request):
        key = (request.match_info["rtype"], request.match_info["rid"])
        if store.pop(key, None) is None:
            return web.Response(status=404)
        return web.Response(status=204)

    async def broken(request):
        return web.json_response(
            {"resourceType": "OperationOutcome", "issue": [{"code": "exception"}]},
            status=500,
        )

    async def looping(request):
        page = int(request.query.get("page", "1"))
        return web.json_response({
            "resourceType": "Bundle",
            "type": "searchset",
            "entry": [{"resource": _consent(f"loop-{page}")}],
            "link": [{"relation": "next", "url": str(request.url.with_query({"page": 2}))}],
        })

    app = web.Application()
    app.router.add_get("/fhir/Broken", broken)
    app.router.add_get("/fhir/Looping", looping)
    app.router.add_get("/fhir/{rtype}/{rid}", read)
    app.router.add_get("/fhir/{rtype}", search)
    app.router.add_post("/fhir/{rtype}", create)
    app.router.add_put("/fhir/{rtype}/{rid}", update)
    app.router.add_delete("/fhir/{rtype}/{rid}", delete)
    return app


@pytest.fixture
def store():
    return {}


@pytest.fixture
def seen():
    return {"headers": [], "queries": []}


@pytest_asyncio.fixture
async def fhir_server(store, seen):
    server = TestServer(_fhir_app(store, seen))
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def client(fhir_server):
    return FHIRClient(base_url=str(fhir_server.make_url("/fhir")), access_token="tok-123")


def _consent(consent_id: str) -> dict:
    return {"resourceType": "Consent", "id": consent_id, "status": "active"}


class TestFHIRModels:
    """Resource and bundle parsing."""

    def test_resource_from_dict(self):
        resource = FHIRResource.from_dict(
            {"resourceType": "Consent", "id": "c1", "meta": {"versionId": "2"}}
        )
        assert resource.resource_type == "Consent"
        assert resource.id == "c1"
        assert resource.meta == {"versionId": "2"}

    def test_resource_to_dict_carries_type_and_id(self):
        resource = FHIRResource(resource_type="Goal", id="g1", data={"status": "active"})
        assert resource.to_dict() == {"resourceType": "Goal", "id": "g1", "status": "active"}

    def test_to_dict_keeps_profile_stamped_on_data(self):
        resource = FHIRResource.from_dict(
            {"resourceType": "Consent", "id": "c1", "meta": {"versionId": "1"}}
        )

        add_profile(resource.data, profiles.CONSENT)
        data = resource.to_dict()

        assert has_profile(data, profiles.CONSENT)
        assert data["meta"]["versionId"] == "1"
        assert data["id"] == "c1"

    def test_to_dict_uses_fields_when_data_lacks_them(self):
        resource = FHIRResource(
            resource_type="Consent", id="c2", meta={"versionId": "3"}, data={}
        )
        assert resource.to_dict() == {
            "resourceType": "Consent",
            "id": "c2",
            "meta": {"versionId": "3"},
        }

    def test_bundle_from_dict(self):
        bundle = FHIRBundle.from_dict({
            "type": "searchset",
            "entry": [{"resource": _consent("c1")}, {"fullUrl": "no-resource"}],
            "link": [
                {"relation": "self", "url": "http://ehr/Consent"},
                {"relation": "next", "url": "http://ehr/Consent?page=2"},
            ],
        })
        assert bundle.total == 1
        assert [e.id for e in bundle.entries] == ["c1"]
        assert bundle.next_link == "http://ehr/Consent?page=2"


class TestFHIRClient:
    """CRUD and search against a live in-process server."""

    @pytest.mark.asyncio
    async def test_read_existing_resource(self, client, store):
        store[("Consent", "c1")] = _consent("c1")

        resource = await client.read(FHIRResourceType.CONSENT, "c1")

        assert resource is not None
        assert resource.resource_type == "Consent"
        assert resource.data["status"] == "active"

    @pytest.mark.asyncio
    async def test_read_missing_returns_none(self, client):
        assert await client.read("Consent", "missing") is None

    @pytest.mark.asyncio
    async def test_read_deleted_returns_none(self, client):
        assert await client.read("Consent", "deleted-1") is None

    @pytest.mark.asyncio
    async def test_sends_fhir_headers_and_bearer_token(self, client, seen):
        await client.read("Consent", "missing")

        headers = seen["headers"][-1]
        assert headers["Authorization"] == "Bearer tok-123"
        assert headers["Accept"] == "application/fhir+json"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self, fhir_server, seen):
        anonymous = FHIRClient(base_url=str(fhir_server.make_url("/fhir")))
        await anonymous.read("Consent", "missing")

        assert "Authorization" not in seen["headers"][-1]

    @pytest.mark.asyncio
    async def test_search_passes_params_and_count(self, client, store, seen):
        store[("Consent", "c1")] = _consent("c1")
        params = {"patient": "Patient/1"}

        bundle = await client.search("Consent", params, count=10)

        assert [e.id for e in bundle.entries] == ["c1"]
        query = seen["queries"][-1]
        assert query == {"patient": "Patient/1", "_count": "10"}
        assert params == {"patient": "Patient/1"}

    @pytest.mark.asyncio
    async def test_search_all_follows_next_links(self, client, store):
        for cid in ("c1", "c2", "c3"):
            store[("Consent", cid)] = _consent(cid)

        resources = await client.search_all("Consent")

        assert [r.id for r in resources] == ["c1", "c2", "c3"]

    @pytest.mark.asyncio
    async def test_search_all_stops_on_repeated_next_link(self, client):
        resources = await client.search_all("Looping")

        assert [r.id for r in resources] == ["loop-1", "loop-2"]

    @pytest.mark.asyncio
    async def test_create_sends_stamped_profile(self, client, store):
        resource = FHIRResource(resource_type="Consent", data={"status": "draft"})
        add_profile(resource.data, profiles.CONSENT)

        created = await client.create(resource)

        assert has_profile(store[("Consent", created.id)], profiles.CONSENT)

    @pytest.mark.asyncio
    async def test_create_returns_server_copy(self, client, store):
        created = await client.create(
            FHIRResource(resource_type="Consent", data={"status": "draft"})
        )

        assert created.id == "consent-1"
        assert store[("Consent", "consent-1")]["status"] == "draft"

    @pytest.mark.asyncio
    async def test_update_requires_id(self, client):
        with pytest.raises(ValueError):
            await client.update(FHIRResource(resource_type="Consent"))

    @pytest.mark.asyncio
    async def test_update_puts_resource(self, client, store):
        store[("Consent", "c1")] = _consent("c1")
        resource = FHIRResource.from_dict({**_consent("c1"), "status": "inactive"})

        updated = await client.update(resource)

        assert updated.data["status"] == "inactive"
        assert store[("Consent", "c1")]["status"] == "inactive"

    @pytest.mark.asyncio
    async def test_delete(self, client, store):
        store[("Consent", "c1")] = _consent("c1")

        assert await client.delete("Consent", "c1") is True
        assert await client.delete("Consent", "c1") is False

    @pytest.mark.asyncio
    async def test_server_error_raises_with_outcome(self, client):
        with pytest.raises(FHIRClientError) as exc_info:
            await client.search("Broken")

        assert exc_info.value.status == 500
        assert exc_info.value.outcome["resourceType"] == "OperationOutcome"

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self):
        unreachable = FHIRClient(base_url="http://127.0.0.1:1/fhir", timeout=2)

        with pytest.raises(FHIRClientError) as exc_info:
            await unreachable.read("Consent", "c1")

        assert exc_info.value.status is None


def test_build_ehr_client_from_settings():
    settings = EhrSettings(
        fhir_server_url="https://ehr.example.org/fhir/",
        access_token="secret",
        timeout=5,
    )

    client = build_ehr_client(settings)

    assert client.base_url == "https://ehr.example.org/fhir"
    assert client.timeout == 5
    assert client._get_headers()["Authorization"] == "Bearer secret"
