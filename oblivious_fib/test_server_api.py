"""
Tests for the evaluation service and the remote client.

The client's requests.post is routed into FastAPI's TestClient, so both
sides run in-process.
"""

import io
import logging
import pickle

import pytest
from fastapi.testclient import TestClient

import server_api
from oblivious_fib import client as client_module
from oblivious_fib.client import RemoteEvaluator
from oblivious_fib.config import FibConfig
from oblivious_fib.custom_fhe import MockBackend
from oblivious_fib.errors import CapabilityError, DomainBoundExceeded
from oblivious_fib.orchestrator import decrypt_result, encrypt_index

BASE_URL = "http://fhe.test"
BOUND = 12


@pytest.fixture
def http(monkeypatch):
    monkeypatch.setattr(server_api, "setup_logger", lambda *args, **kwargs: logging.getLogger("oblivious_fib"))
    app = server_api.create_app(FibConfig(backend="mock", bound=BOUND, workers=2))
    return TestClient(app)


@pytest.fixture
def client_side():
    backend = MockBackend(width=16)
    client_key, evaluation_key = backend.generate_keys()
    public_key = backend.derive_public_key(client_key)
    return backend, client_key, evaluation_key, public_key


def _open_session(http, client_side, bound=BOUND):
    _, _, evaluation_key, public_key = client_side
    files = {
        'public_key_file': io.BytesIO(pickle.dumps(public_key)),
        'evaluation_key_file': io.BytesIO(pickle.dumps(evaluation_key)),
    }
    return http.post("/session", files=files, data={'bound': str(bound)})


def test_home(http):
    response = http.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "FHE Server Online", "backend": "mock", "sessions": 0}


def test_session_and_both_strategies(http, client_side):
    backend, client_key, _, _ = client_side
    response = _open_session(http, client_side)
    assert response.status_code == 200
    info = response.json()
    assert info["bound"] == BOUND
    assert info["backend"] == "mock"

    encrypted = encrypt_index(backend, 7, BOUND, client_key)
    for strategy in ("iterative", "lookup"):
        response = http.post(
            f"/evaluate/{info['session_id']}",
            params={'strategy': strategy},
            files={'index_file': io.BytesIO(pickle.dumps(encrypted))},
        )
        assert response.status_code == 200
        result = pickle.loads(response.content)
        assert decrypt_result(backend, result, client_key, BOUND) == 13

    assert http.get("/").json()["sessions"] == 1


def test_out_of_range_index_detected_by_client(http, client_side):
    backend, client_key, _, _ = client_side
    session_id = _open_session(http, client_side).json()["session_id"]

    encrypted = backend.encrypt(BOUND + 3, client_key)
    response = http.post(
        f"/evaluate/{session_id}",
        files={'index_file': io.BytesIO(pickle.dumps(encrypted))},
    )
    assert response.status_code == 200
    with pytest.raises(DomainBoundExceeded):
        decrypt_result(backend, pickle.loads(response.content), client_key, BOUND)


def test_unknown_session(http, client_side):
    backend, client_key, _, _ = client_side
    encrypted = encrypt_index(backend, 1, BOUND, client_key)
    response = http.post(
        "/evaluate/nope",
        files={'index_file': io.BytesIO(pickle.dumps(encrypted))},
    )
    assert response.status_code == 404


def test_bad_strategy(http, client_side):
    backend, client_key, _, _ = client_side
    session_id = _open_session(http, client_side).json()["session_id"]
    encrypted = encrypt_index(backend, 1, BOUND, client_key)
    response = http.post(
        f"/evaluate/{session_id}",
        params={'strategy': 'guess'},
        files={'index_file': io.BytesIO(pickle.dumps(encrypted))},
    )
    assert response.status_code == 422


def test_bound_too_large(http, client_side):
    assert _open_session(http, client_side, bound=25).status_code == 422


def test_garbage_upload(http, client_side):
    session_id = _open_session(http, client_side).json()["session_id"]
    response = http.post(
        f"/evaluate/{session_id}",
        files={'index_file': io.BytesIO(b"not a pickle")},
    )
    assert response.status_code == 400


def test_wrong_object_type(http, client_side):
    session_id = _open_session(http, client_side).json()["session_id"]
    response = http.post(
        f"/evaluate/{session_id}",
        files={'index_file': io.BytesIO(pickle.dumps({"n": 3}))},
    )
    assert response.status_code == 400


def test_index_width_must_match_server(http, client_side):
    _, client_key, _, _ = client_side
    session_id = _open_session(http, client_side).json()["session_id"]

    narrow = MockBackend(width=4)
    encrypted = narrow.encrypt(3, client_key)
    response = http.post(
        f"/evaluate/{session_id}",
        files={'index_file': io.BytesIO(pickle.dumps(encrypted))},
    )
    assert response.status_code == 400
    assert "4 bits wide" in response.json()["detail"]


def test_close_session(http, client_side):
    session_id = _open_session(http, client_side).json()["session_id"]
    assert http.delete(f"/session/{session_id}").status_code == 200
    assert http.delete(f"/session/{session_id}").status_code == 404


# =============================================================================
# Remote client
# =============================================================================

@pytest.fixture
def routed(http, monkeypatch):
    def post(url, timeout=None, **kwargs):
        return http.post(url[len(BASE_URL):], **kwargs)

    monkeypatch.setattr(client_module.requests, "post", post)
    return http


def test_remote_evaluator(routed, client_side):
    backend, client_key, evaluation_key, public_key = client_side
    remote = RemoteEvaluator(BASE_URL, public_key, evaluation_key, BOUND)

    for n in (0, 1, 7, BOUND):
        encrypted = encrypt_index(backend, n, BOUND, client_key)
        lookup = remote.evaluate(encrypted, "lookup")
        iterative = remote.evaluate(encrypted, "iterative")
        assert decrypt_result(backend, lookup, client_key) == decrypt_result(backend, iterative, client_key)

    assert decrypt_result(backend, remote.evaluate(encrypt_index(backend, 12, BOUND, client_key)), client_key) == 144
    assert remote.session_id is not None


def test_remote_evaluator_http_error(routed, client_side):
    backend, client_key, evaluation_key, public_key = client_side
    remote = RemoteEvaluator(BASE_URL, public_key, evaluation_key, bound=40)
    with pytest.raises(CapabilityError, match="422"):
        remote.open_session()


def test_remote_evaluator_releases_sessions(routed, client_side, monkeypatch):
    def delete(url, timeout=None, **kwargs):
        return routed.delete(url[len(BASE_URL):], **kwargs)

    monkeypatch.setattr(client_module.requests, "delete", delete)
    backend, client_key, evaluation_key, public_key = client_side

    for n in range(5):
        with RemoteEvaluator(BASE_URL, public_key, evaluation_key, BOUND) as remote:
            encrypted = encrypt_index(backend, n, BOUND, client_key)
            assert decrypt_result(backend, remote.evaluate(encrypted), client_key) == [0, 1, 1, 2, 3][n]
            assert routed.get("/").json()["sessions"] == 1
        assert remote.session_id is None

    assert routed.get("/").json()["sessions"] == 0


def test_close_without_session_is_a_no_op(client_side):
    _, _, evaluation_key, public_key = client_side
    remote = RemoteEvaluator(BASE_URL, public_key, evaluation_key, BOUND)
    remote.close()
    assert remote.session_id is None
