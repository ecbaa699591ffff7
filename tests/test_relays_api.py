from fastapi.testclient import TestClient

from relay_ranker.main import app
from relay_ranker.models.ranking import HostScore, ProbeDiagnostic, RankedResult
from relay_ranker.services import latency_monitor
from relay_ranker.services.catalog import CatalogError
from relay_ranker.services.host_prober import InvalidAddressError

client = TestClient(app)


def _fake_result():
    return RankedResult(
        entries=[
            HostScore(hostname="se-sto-wg-001", address="185.213.154.68", score=12, probes=4, failures=0, success_average=12.0),
            HostScore(hostname="de-fra-wg-004", address="185.213.155.10", score=31, probes=4, failures=0, success_average=31.0),
            HostScore(hostname="us-nyc-wg-301", address="193.32.249.66", score=25070, probes=4, failures=1, success_average=94.0),
        ],
        diagnostics=[
            ProbeDiagnostic(hostname="broken-wg-001", address="n/a", error="relay 'broken-wg-001' has an invalid address: 'n/a'"),
        ],
    )


def _patch_ranking(monkeypatch, result=None, exc=None):
    async def fake_get_ranking(settings=None, transport=None):
        if exc is not None:
            raise exc
        return result

    monkeypatch.setattr(latency_monitor, "get_ranking", fake_get_ranking)


def test_health_endpoint():
    response = client.get("/health/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_ranking_endpoint_returns_top_entries(monkeypatch):
    _patch_ranking(monkeypatch, result=_fake_result())

    response = client.get("/relays/ranking", params={"top": 2})
    assert response.status_code == 200

    data = response.json()
    assert isinstance(data, list)
    assert [item["hostname"] for item in data] == ["se-sto-wg-001", "de-fra-wg-004"]
    assert data[0]["score"] == 12
    assert data[0]["failures"] == 0


def test_ranking_endpoint_defaults_to_settings_top_n(monkeypatch):
    monkeypatch.setenv("RANKING_TOP_N", "1")
    _patch_ranking(monkeypatch, result=_fake_result())

    response = client.get("/relays/ranking")
    assert response.status_code == 200
    assert [item["hostname"] for item in response.json()] == ["se-sto-wg-001"]


def test_ranking_endpoint_negative_top_is_empty(monkeypatch):
    _patch_ranking(monkeypatch, result=_fake_result())

    response = client.get("/relays/ranking", params={"top": -1})
    assert response.status_code == 200
    assert response.json() == []


def test_full_ranking_endpoint_includes_diagnostics(monkeypatch):
    _patch_ranking(monkeypatch, result=_fake_result())

    response = client.get("/relays/ranking/full")
    assert response.status_code == 200

    body = response.json()
    assert len(body["entries"]) == 3
    assert body["entries"][2]["failures"] == 1
    assert body["diagnostics"][0]["hostname"] == "broken-wg-001"


def test_catalog_error_maps_to_503(monkeypatch):
    _patch_ranking(monkeypatch, exc=CatalogError("relay catalog request failed with status 502"))

    response = client.get("/relays/ranking")

    assert response.status_code == 503
    assert "status 502" in response.json()["detail"]


def test_invalid_address_in_abort_mode_maps_to_422(monkeypatch):
    _patch_ranking(monkeypatch, exc=InvalidAddressError("broken-wg-001", "n/a"))

    response = client.get("/relays/ranking/full")

    assert response.status_code == 422
    assert "broken-wg-001" in response.json()["detail"]


def test_ranking_survives_out_of_range_sentinel_setting(monkeypatch, fake_transport_cls, relay_factory):
    """
    PROBE_FAILURE_SENTINEL_MS=5000 is below the plausible-RTT floor; the
    setting falls back to the default and the endpoint still ranks relays.
    """
    monkeypatch.setenv("PROBE_FAILURE_SENTINEL_MS", "5000")

    async def fake_fetch_relays(url, timeout_seconds=10.0, client=None):
        return [relay_factory("a", "10.0.0.1"), relay_factory("b", "10.0.0.2")]

    transport = fake_transport_cls(
        script={"10.0.0.1": [20, 20, 20, 20], "10.0.0.2": [5, 5, 5, None]}
    )
    monkeypatch.setattr(latency_monitor, "fetch_relays", fake_fetch_relays)
    monkeypatch.setattr(latency_monitor, "PingTransport", lambda timeout_seconds: transport)

    response = TestClient(app, raise_server_exceptions=False).get("/relays/ranking")

    assert response.status_code == 200
    data = response.json()
    assert [item["hostname"] for item in data] == ["a", "b"]
    assert data[1]["score"] == (5 + 5 + 5 + 99999) // 4
