"""
Client for the evaluation service (server_api.py).

Keys stay on this machine; only the public key, the evaluation key and
encrypted indices are sent.
"""

import io
import logging
import pickle
from typing import Optional

import requests

from .custom_fhe import EncryptedValue, EvaluationKey, PublicKey
from .errors import CapabilityError
from .evaluator import EncryptedResult

logger = logging.getLogger(__name__)


class RemoteEvaluator:
    def __init__(self, url: str, public_key: PublicKey, evaluation_key: EvaluationKey,
                 bound: int, timeout: Optional[float] = None):
        self.url = url.rstrip("/")
        self.public_key = public_key
        self.evaluation_key = evaluation_key
        self.bound = bound
        self.timeout = timeout
        self.session_id = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _post(self, path, **kwargs):
        try:
            response = requests.post(f"{self.url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise CapabilityError(f"Server unreachable: {e}") from e
        if response.status_code != 200:
            raise CapabilityError(f"Server Error {response.status_code}: {response.text}")
        return response

    def open_session(self) -> str:
        """Upload the keys; the server builds its tables for `bound`."""
        files = {
            'public_key_file': io.BytesIO(pickle.dumps(self.public_key)),
            'evaluation_key_file': io.BytesIO(pickle.dumps(self.evaluation_key)),
        }
        response = self._post("/session", files=files, data={'bound': str(self.bound)})
        info = response.json()
        self.session_id = info['session_id']
        logger.info(f"Session {self.session_id[:8]} open, server setup {info['setup_ms']:.1f} ms")
        return self.session_id

    def evaluate(self, encrypted_index: EncryptedValue, strategy: str = "lookup") -> EncryptedResult:
        if self.session_id is None:
            self.open_session()
        files = {'index_file': io.BytesIO(pickle.dumps(encrypted_index))}
        response = self._post(
            f"/evaluate/{self.session_id}", params={'strategy': strategy}, files=files
        )
        result = pickle.loads(response.content)
        if not isinstance(result, EncryptedResult):
            raise CapabilityError(f"Unexpected response payload: {type(result).__name__}")
        return result

    def close(self):
        """Release the server-side session (evaluation key and tables)."""
        if self.session_id is None:
            return
        session_id, self.session_id = self.session_id, None
        try:
            response = requests.delete(f"{self.url}/session/{session_id}", timeout=self.timeout)
        except requests.RequestException as e:
            raise CapabilityError(f"Server unreachable: {e}") from e
        if response.status_code not in (200, 404):
            raise CapabilityError(f"Server Error {response.status_code}: {response.text}")
        logger.info(f"Session {session_id[:8]} closed")
