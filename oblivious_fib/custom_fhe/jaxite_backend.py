"""
TFHE backend on jaxite's bootstrapped boolean gates.

Integers are bit slices of LWE ciphertexts (see circuits.py). Each gate is a
programmable bootstrap, so noise never accumulates and the Fibonacci loop can
run for any bound.

jaxite has no public-key LWE encryption. Constants "encrypted" under the
public key are trivial (noiseless) ciphertexts built with jaxite_bool.constant.
That is enough for the index and Fibonacci tables, whose contents are public;
the secret index is always encrypted with the client key.
"""

import logging
import secrets
from typing import Optional, Tuple

from jaxite.jaxite_bool import bool_params
from jaxite.jaxite_bool import jaxite_bool

from . import circuits
from .backend import ClientKey, EvaluationKey, FHEBackend, PublicKey, new_key_id

logger = logging.getLogger(__name__)


class JaxiteGates:
    """The four gates the circuits need, bound to one server key set."""

    def __init__(self, server_key_set, params):
        self.sks = server_key_set
        self.params = params

    def xor(self, lhs, rhs):
        return jaxite_bool.xor_(lhs, rhs, self.sks, self.params)

    def and_(self, lhs, rhs):
        return jaxite_bool.and_(lhs, rhs, self.sks, self.params)

    def or_(self, lhs, rhs):
        return jaxite_bool.or_(lhs, rhs, self.sks, self.params)

    def xnor(self, lhs, rhs):
        return jaxite_bool.xnor_(lhs, rhs, self.sks, self.params)


class JaxiteBackend(FHEBackend):

    def __init__(self, width: int = 16, seed: Optional[int] = None):
        super().__init__(width)
        self.params = bool_params.get_params_for_128_bit_security()
        self.seed = seed if seed is not None else secrets.randbits(31)
        logger.info(f"[Jaxite] Initialized {width}-bit integers, 128-bit security")

    @property
    def name(self) -> str:
        return 'jaxite'

    def generate_keys(self) -> Tuple[ClientKey, EvaluationKey]:
        logger.info("[Jaxite] Generating keys...")
        lwe_rng = bool_params.get_lwe_rng_for_128_bit_security(self.seed)
        rlwe_rng = bool_params.get_rlwe_rng_for_128_bit_security(self.seed)
        cks = jaxite_bool.ClientKeySet(self.params, lwe_rng, rlwe_rng)
        sks = jaxite_bool.ServerKeySet(cks, self.params, lwe_rng, rlwe_rng)

        key_id = new_key_id()
        client_key = ClientKey(key_id, (cks, lwe_rng))
        evaluation_key = EvaluationKey(key_id, JaxiteGates(sks, self.params))
        return client_key, evaluation_key

    def derive_public_key(self, client_key: ClientKey) -> PublicKey:
        return PublicKey(client_key.key_id, self.params)

    def _encrypt(self, value, key):
        bits = circuits.int_to_bit_slice(value, self.width)
        if isinstance(key, ClientKey):
            cks, lwe_rng = key.material
            return [jaxite_bool.encrypt(bit, cks, lwe_rng) for bit in bits]
        return [jaxite_bool.constant(bit, key.material) for bit in bits]

    def _decrypt(self, payload, client_key):
        cks, _ = client_key.material
        return circuits.bit_slice_to_int(
            [jaxite_bool.decrypt(bit, cks) for bit in payload]
        )

    def _add(self, lhs, rhs, evaluation_key):
        return circuits.ripple_carry_add(lhs, rhs, evaluation_key.material)

    def _eq(self, lhs, rhs, evaluation_key):
        return circuits.equal(lhs, rhs, evaluation_key.material)

    def _select(self, cond, if_true, if_false, evaluation_key):
        return circuits.multiplex(cond, if_true, if_false, evaluation_key.material)
