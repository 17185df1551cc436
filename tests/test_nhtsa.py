# tests/test_nhtsa.py
import httpx
import pytest

from carfinder import utils
from carfinder.nhtsa import DECODER_URL, RECALLS_URL, NhtsaClient, NhtsaError


def _client(handler):
    return NhtsaClient(client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_decode_vin_returns_first_result():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        return httpx.Response(200, json={"Count": 1, "Results": [{"Make": "HONDA"}, {"Make": "IGNORED"}]})

    assert _client(handler).decode_vin(" 1HGCM82633A004352 ") == {"Make": "HONDA"}
    assert str(seen["url"]).startswith(f"{DECODER_URL}1HGCM82633A004352")
    assert seen["url"].params["format"] == "json"


def test_decode_vin_without_results():
    assert _client(lambda request: httpx.Response(200, json={"Results": []})).decode_vin("X") is None


def test_get_recalls_params():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        return httpx.Response(200, json={"Count": 0, "results": []})

    assert _client(handler).get_recalls("Honda", "Accord", 2018) == {"Count": 0, "results": []}
    assert str(seen["url"]).startswith(RECALLS_URL)
    assert dict(seen["url"].params) == {"make": "Honda", "model": "Accord", "modelYear": "2018"}


def test_error_status_raises():
    client = _client(lambda request: httpx.Response(503))
    with pytest.raises(NhtsaError):
        client.decode_vin("1HGCM82633A004352")


def test_transport_errors_are_retried(monkeypatch):
    monkeypatch.setattr(utils.time, "sleep", lambda seconds: None)
    attempts = []

    def handler(request):
        attempts.append(request.url)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"Results": [{"Make": "TOYOTA"}]})

    assert _client(handler).decode_vin("2T1BURHE0JC012345") == {"Make": "TOYOTA"}
    assert len(attempts) == 3
