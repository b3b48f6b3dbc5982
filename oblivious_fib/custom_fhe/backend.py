"""
FHE capability interface.

The evaluator only ever talks to an EvaluationContext: the handle returned
when an evaluation key is installed. It offers exactly the primitives an
oblivious selection needs (add, eq, select), so any backend with
constant-time versions of them can be swapped in without touching the
evaluator.

    Client                          Server
    ──────                          ──────
    1. generate_keys()
    2. derive_public_key()
    3. encrypt(n, client_key) ───► 4. install_evaluation_key() -> ctx
                                   5. ctx.eq / ctx.select / ctx.add
    7. decrypt(result)        ◄─── 6. return encrypted result
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import CapabilityError

logger = logging.getLogger(__name__)


# =============================================================================
# Keys
# =============================================================================

@dataclass(frozen=True)
class ClientKey:
    """Secret key. Decrypts, and is the only source of the public key."""
    key_id: str
    material: Any = field(repr=False)


@dataclass(frozen=True)
class PublicKey:
    """Encrypts only."""
    key_id: str
    material: Any = field(repr=False)


@dataclass(frozen=True)
class EvaluationKey:
    """Enables homomorphic operations without revealing plaintext."""
    key_id: str
    material: Any = field(repr=False)


def new_key_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# Ciphertexts
# =============================================================================

class EncryptedValue:
    """Opaque ciphertext of an unsigned integer in [0, 2**width - 1]."""

    __slots__ = ("key_id", "width", "payload")

    def __init__(self, key_id: str, width: int, payload: Any):
        self.key_id = key_id
        self.width = width
        self.payload = payload

    def __repr__(self):
        return f"EncryptedValue(key={self.key_id[:8]}, width={self.width})"


class EncryptedBoolean:
    """Opaque result of an equality test. Only ever fed to select()."""

    __slots__ = ("key_id", "payload")

    def __init__(self, key_id: str, payload: Any):
        self.key_id = key_id
        self.payload = payload

    def __repr__(self):
        return f"EncryptedBoolean(key={self.key_id[:8]})"


# =============================================================================
# Backend interface
# =============================================================================

class FHEBackend(ABC):
    """Abstract base class for FHE backends.

    Implementations provide key generation and the payload-level primitives
    (_encrypt, _decrypt, _add, _eq, _select). Key checks, statistics and the
    once-only evaluation key install live here.
    """

    def __init__(self, width: int = 16):
        self.width = width
        self.max_value = (1 << width) - 1
        self._installed = False
        self._lock = threading.Lock()
        self.stats = {
            'encryptions': 0,
            'decryptions': 0,
        }

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name."""

    @abstractmethod
    def generate_keys(self) -> Tuple[ClientKey, EvaluationKey]:
        """Generate a fresh (client key, evaluation key) pair."""

    @abstractmethod
    def derive_public_key(self, client_key: ClientKey) -> PublicKey:
        """Derive the encryption-only public key."""

    @abstractmethod
    def _encrypt(self, value: int, key) -> Any:
        ...

    @abstractmethod
    def _decrypt(self, payload: Any, client_key: ClientKey) -> int:
        ...

    @abstractmethod
    def _add(self, lhs: Any, rhs: Any, evaluation_key: EvaluationKey) -> Any:
        ...

    @abstractmethod
    def _eq(self, lhs: Any, rhs: Any, evaluation_key: EvaluationKey) -> Any:
        ...

    @abstractmethod
    def _select(self, cond: Any, if_true: Any, if_false: Any,
                evaluation_key: EvaluationKey) -> Any:
        ...

    def encrypt(self, value: int, key) -> EncryptedValue:
        """Encrypt `value` under a ClientKey or a PublicKey."""
        if not isinstance(key, (ClientKey, PublicKey)):
            raise CapabilityError(f"Cannot encrypt with {type(key).__name__}")
        if not 0 <= value <= self.max_value:
            raise CapabilityError(
                f"Plaintext {value} does not fit in {self.width} bits"
            )
        try:
            payload = self._encrypt(int(value), key)
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"[{self.name}] encryption failed: {e}") from e

        with self._lock:
            self.stats['encryptions'] += 1
        return EncryptedValue(key.key_id, self.width, payload)

    def decrypt(self, ciphertext: EncryptedValue, client_key: ClientKey) -> int:
        if not isinstance(client_key, ClientKey):
            raise CapabilityError("Decryption requires the client key")
        if ciphertext.key_id != client_key.key_id:
            raise CapabilityError("Ciphertext was not encrypted under this client key")
        try:
            value = self._decrypt(ciphertext.payload, client_key)
        except Exception as e:
            raise CapabilityError(f"[{self.name}] decryption failed: {e}") from e

        with self._lock:
            self.stats['decryptions'] += 1
        return value

    def install_evaluation_key(self, evaluation_key: EvaluationKey,
                               public_key: PublicKey) -> "EvaluationContext":
        """Install the evaluation key and return the handle for homomorphic ops.

        Allowed exactly once per backend instance. The returned context is
        read-only and can be shared between concurrent queries.
        """
        if evaluation_key.key_id != public_key.key_id:
            raise CapabilityError("Evaluation key and public key belong to different key sets")
        with self._lock:
            if self._installed:
                raise CapabilityError("Evaluation key already installed for this backend")
            self._installed = True
        logger.info(f"[{self.name}] Evaluation key installed")
        return EvaluationContext(self, evaluation_key, public_key)

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()


# =============================================================================
# Evaluation context
# =============================================================================

class EvaluationContext:
    """Explicit handle to an installed evaluation key.

    Passed by reference into every homomorphic call instead of living in
    process-wide state.
    """

    def __init__(self, backend: FHEBackend, evaluation_key: EvaluationKey,
                 public_key: PublicKey):
        self.backend = backend
        self.key_id = evaluation_key.key_id
        self.width = backend.width
        self._evaluation_key = evaluation_key
        self._public_key = public_key
        self._lock = threading.Lock()
        self._trace: Optional[List[str]] = None
        self.stats = {
            'additions': 0,
            'equalities': 0,
            'selects': 0,
        }

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    def _check(self, *ciphertexts):
        for ct in ciphertexts:
            if ct.key_id != self.key_id:
                raise CapabilityError("Ciphertext belongs to a different key set")
            if isinstance(ct, EncryptedValue) and ct.width != self.width:
                raise CapabilityError(
                    f"Ciphertext is {ct.width} bits wide, context expects {self.width}"
                )

    def _record(self, stat: str, op: str):
        with self._lock:
            self.stats[stat] += 1
            if self._trace is not None:
                self._trace.append(op)

    def _run(self, op: str, fn, *args):
        try:
            return fn(*args, self._evaluation_key)
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(f"[{self.backend.name}] homomorphic {op} failed: {e}") from e

    def add(self, lhs: EncryptedValue, rhs: EncryptedValue) -> EncryptedValue:
        """Homomorphic addition mod 2**width."""
        self._check(lhs, rhs)
        payload = self._run("add", self.backend._add, lhs.payload, rhs.payload)
        self._record('additions', "add")
        return EncryptedValue(self.key_id, self.width, payload)

    def eq(self, lhs: EncryptedValue, rhs: EncryptedValue) -> EncryptedBoolean:
        """Homomorphic equality test."""
        self._check(lhs, rhs)
        payload = self._run("eq", self.backend._eq, lhs.payload, rhs.payload)
        self._record('equalities', "eq")
        return EncryptedBoolean(self.key_id, payload)

    def select(self, cond: EncryptedBoolean, if_true: EncryptedValue,
               if_false: EncryptedValue) -> EncryptedValue:
        """Oblivious select: if_true where cond holds, else if_false."""
        self._check(cond, if_true, if_false)
        payload = self._run("select", self.backend._select,
                            cond.payload, if_true.payload, if_false.payload)
        self._record('selects', "select")
        return EncryptedValue(self.key_id, self.width, payload)

    def start_trace(self):
        """Record the sequence of operations from now on."""
        with self._lock:
            self._trace = []

    def stop_trace(self) -> List[str]:
        with self._lock:
            trace, self._trace = self._trace or [], None
        return trace

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return self.stats.copy()
