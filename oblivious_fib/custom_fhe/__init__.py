"""
FHE capability for the oblivious evaluator.

Supported Backends:
1. jaxite - TFHE boolean gates, bit-sliced integers (real encryption)
2. mock   - Development/testing without encryption

Usage:
    from oblivious_fib.custom_fhe import create_backend

    backend = create_backend('jaxite', width=16)
    client_key, evaluation_key = backend.generate_keys()
    public_key = backend.derive_public_key(client_key)
    ctx = backend.install_evaluation_key(evaluation_key, public_key)
"""

import importlib.util
from typing import List, Optional

from ..errors import CapabilityError, ConfigError
from .backend import (
    ClientKey,
    EncryptedBoolean,
    EncryptedValue,
    EvaluationContext,
    EvaluationKey,
    FHEBackend,
    PublicKey,
)
from .mock_backend import MockBackend


def get_available_backends() -> List[str]:
    """Return list of available FHE backends."""
    backends = []
    if importlib.util.find_spec("jaxite") is not None:
        backends.append('jaxite')
    backends.append('mock')  # Always available
    return backends


def create_backend(name: str = 'jaxite', width: int = 16,
                   seed: Optional[int] = None) -> FHEBackend:
    """Create an FHE backend instance by name.

    There is no fallback: asking for jaxite without jaxite installed is an
    error, never a silent switch to the mock backend.
    """
    if name == 'mock':
        return MockBackend(width)

    if name == 'jaxite':
        try:
            from .jaxite_backend import JaxiteBackend
        except ImportError as e:
            raise CapabilityError("jaxite not available. Install with: pip install jaxite") from e
        return JaxiteBackend(width, seed=seed)

    raise ConfigError(f"Unknown backend: {name}. Available: {get_available_backends()}")


__all__ = [
    'ClientKey',
    'EncryptedBoolean',
    'EncryptedValue',
    'EvaluationContext',
    'EvaluationKey',
    'FHEBackend',
    'MockBackend',
    'PublicKey',
    'create_backend',
    'get_available_backends',
]
