import httpx
import pytest

from funprints.errors import LookupUnavailable
from funprints.postal import Locality, PostalLookup

OFFICES_600028 = [
    {"Name": "Mandaveli", "District": "Chennai", "State": "Tamil Nadu"},
    {"Name": "Raja Annamalaipuram", "District": "Chennai", "State": "Tamil Nadu"},
    {"Name": "Foreshore Estate", "District": "Chennai", "State": "Tamil Nadu"},
]


def make_lookup(handler) -> PostalLookup:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PostalLookup("https://postal.test/pincode", client=client)


def directory(request: httpx.Request) -> httpx.Response:
    pincode = request.url.path.rsplit("/", 1)[-1]
    if pincode == "600028":
        return httpx.Response(200, json=[{"Status": "Success", "PostOffice": OFFICES_600028}])
    return httpx.Response(200, json=[{"Status": "Error", "Message": "No records found", "PostOffice": None}])


@pytest.mark.asyncio
async def test_lookup_returns_localities():
    localities = await make_lookup(directory).lookup("600028")
    assert len(localities) == 3
    assert localities[0] == Locality(name="Mandaveli", district="Chennai", state="Tamil Nadu")


@pytest.mark.asyncio
async def test_unknown_pincode_returns_empty():
    assert await make_lookup(directory).lookup("999999") == []


@pytest.mark.asyncio
async def test_server_error_is_unavailable():
    lookup = make_lookup(lambda request: httpx.Response(502))
    with pytest.raises(LookupUnavailable):
        await lookup.lookup("600028")


@pytest.mark.asyncio
async def test_network_error_is_unavailable():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LookupUnavailable):
        await make_lookup(refuse).lookup("600028")


@pytest.mark.asyncio
async def test_non_json_body_is_unavailable():
    lookup = make_lookup(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(LookupUnavailable):
        await lookup.lookup("600028")


@pytest.mark.asyncio
async def test_rejects_malformed_pincode_without_calling_out():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    with pytest.raises(ValueError):
        await make_lookup(handler).lookup("12345")
    assert calls == []


class TestPincodeEndpoint:
    def test_found(self, client, override_lookup):
        override_lookup(make_lookup(directory))
        resp = client.get("/api/pincode/600028")
        assert resp.status_code == 200
        body = resp.json()
        assert body["found"] is True
        assert [loc["name"] for loc in body["localities"]][0] == "Mandaveli"

    def test_lookup_down_is_503(self, client, override_lookup):
        override_lookup(make_lookup(lambda request: httpx.Response(500)))
        resp = client.get("/api/pincode/600028")
        assert resp.status_code == 503

    def test_bad_pincode_is_422(self, client):
        assert client.get("/api/pincode/12345").status_code == 422
