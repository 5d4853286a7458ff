import pytest
import requests

from receivables.errors import ConfigurationError, GatewayError
from receivables.gateway import GatewayClient


class FakeResponse:
    def __init__(self, status_code: int, payload) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers))
        if self.error:
            raise self.error
        return self.response


def _client(session: FakeSession, private_key: str = "prv_test") -> GatewayClient:
    return GatewayClient(api_url="https://gateway.test/v1/", private_key=private_key, session=session)


def test_get_transaction() -> None:
    session = FakeSession(FakeResponse(200, {"data": {"id": "tx-1", "status": "APPROVED"}}))

    assert _client(session).get_transaction("tx-1") == {"id": "tx-1", "status": "APPROVED"}
    url, headers = session.calls[0]
    assert url == "https://gateway.test/v1/transactions/tx-1"
    assert headers == {"Authorization": "Bearer prv_test"}


def test_gateway_error_keeps_status_and_details() -> None:
    session = FakeSession(FakeResponse(404, {"error": {"type": "NOT_FOUND_ERROR"}}))

    with pytest.raises(GatewayError) as excinfo:
        _client(session).get_transaction("tx-1")
    assert excinfo.value.status_code == 404
    assert excinfo.value.details == {"error": {"type": "NOT_FOUND_ERROR"}}


def test_unreachable_gateway() -> None:
    session = FakeSession(error=requests.ConnectionError("refused"))

    with pytest.raises(GatewayError) as excinfo:
        _client(session).get_transaction("tx-1")
    assert excinfo.value.status_code is None


def test_response_without_data() -> None:
    with pytest.raises(GatewayError) as excinfo:
        _client(FakeSession(FakeResponse(200, {"meta": {}}))).get_transaction("tx-1")
    assert excinfo.value.status_code == 502


def test_missing_private_key() -> None:
    with pytest.raises(ConfigurationError):
        _client(FakeSession(), private_key="").get_transaction("tx-1")


@pytest.mark.parametrize(
    "transaction_id, expected_path",
    [
        ("../merchants/pub_x?x=", "/transactions/..%2Fmerchants%2Fpub_x%3Fx%3D"),
        ("tx 1#frag", "/transactions/tx%201%23frag"),
    ],
)
def test_transaction_id_stays_in_one_path_segment(transaction_id, expected_path) -> None:
    session = FakeSession(FakeResponse(200, {"data": {"id": transaction_id}}))

    _client(session).get_transaction(transaction_id)
    url, _ = session.calls[0]
    assert url == "https://gateway.test/v1" + expected_path
