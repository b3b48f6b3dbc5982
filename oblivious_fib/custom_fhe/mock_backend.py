"""
Mock backend for development and testing.

Provides no actual encryption: a ciphertext carries its plaintext next to the
key id it was "encrypted" under. Key checks, wraparound arithmetic and the op
statistics behave like a real backend, which is what the evaluator tests need.
Never use in production.
"""

import logging
import secrets
from typing import Tuple

from .backend import ClientKey, EvaluationKey, FHEBackend, PublicKey, new_key_id

logger = logging.getLogger(__name__)


class MockBackend(FHEBackend):

    def __init__(self, width: int = 16):
        super().__init__(width)
        logger.warning("[MockFHE] Using mock backend - NO ENCRYPTION!")

    @property
    def name(self) -> str:
        return 'mock'

    def generate_keys(self) -> Tuple[ClientKey, EvaluationKey]:
        key_id = new_key_id()
        client_key = ClientKey(key_id, secrets.token_bytes(16))
        evaluation_key = EvaluationKey(key_id, None)
        return client_key, evaluation_key

    def derive_public_key(self, client_key: ClientKey) -> PublicKey:
        return PublicKey(client_key.key_id, None)

    def _encrypt(self, value, key):
        return value

    def _decrypt(self, payload, client_key):
        return int(payload)

    def _add(self, lhs, rhs, evaluation_key):
        return (lhs + rhs) & self.max_value

    def _eq(self, lhs, rhs, evaluation_key):
        return int(lhs == rhs)

    def _select(self, cond, if_true, if_false, evaluation_key):
        # arithmetic mux, no branch on cond
        return cond * if_true + (1 - cond) * if_false
