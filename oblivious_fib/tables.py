"""
Constant tables: encrypted indices 0..bound and encrypted F(0)..F(bound).

Each entry is an independent encryption under the public key, so both tables
are built on a thread pool. executor.map returns results in submission order,
which keeps table[i] at index i whatever order the tasks finish in.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List

from .custom_fhe import EncryptedValue, FHEBackend, PublicKey
from .recurrence import fibonacci_sequence

logger = logging.getLogger(__name__)


@dataclass
class Tables:
    bound: int
    index: List[EncryptedValue]
    fibonacci: List[EncryptedValue]


def _encrypt_all(values, public_key: PublicKey, backend: FHEBackend, workers: int):
    # The first failed encryption propagates out of map(); no partial table
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda v: backend.encrypt(v, public_key), values))


def build_index_table(bound: int, public_key: PublicKey, backend: FHEBackend,
                      workers: int = 4) -> List[EncryptedValue]:
    """Encrypt 0..=bound; table[i] decrypts to i."""
    logger.info(f"Encrypting index table (0-{bound})...")
    return _encrypt_all(range(bound + 1), public_key, backend, workers)


def build_fibonacci_table(bound: int, public_key: PublicKey, backend: FHEBackend,
                          workers: int = 4) -> List[EncryptedValue]:
    """Encrypt F(0)..F(bound) computed in the backend's wraparound width."""
    logger.info(f"Encrypting Fibonacci table (0-{bound})...")
    values = fibonacci_sequence(bound, backend.width)
    return _encrypt_all(values, public_key, backend, workers)


def build_tables(bound: int, public_key: PublicKey, backend: FHEBackend,
                 workers: int = 4) -> Tables:
    return Tables(
        bound=bound,
        index=build_index_table(bound, public_key, backend, workers),
        fibonacci=build_fibonacci_table(bound, public_key, backend, workers),
    )
