"""
One end-to-end run: keys, input, both strategies, decryption, cross-check.

    [ CLIENT ] generate keys, derive public key
    [ SERVER ] install evaluation key
    [ CLIENT ] read and encrypt the index
    [ SERVER ] build tables, run iterative, run lookup
    [ CLIENT ] decrypt both results, compare with the plaintext reference

No retries here: any CapabilityError propagates and aborts the run.
"""

import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .config import FibConfig
from .custom_fhe import ClientKey, EncryptedValue, EvaluationContext, FHEBackend, PublicKey, create_backend
from .errors import DomainBoundExceeded
from .evaluator import STRATEGIES, EncryptedResult, ObliviousEvaluator
from .monitor import StageMetrics, StageTimer, format_stage_table
from .recurrence import fibonacci_plaintext
from .tables import Tables, build_tables

logger = logging.getLogger(__name__)


@dataclass
class KeySession:
    backend: FHEBackend
    client_key: ClientKey
    public_key: PublicKey
    ctx: EvaluationContext


@dataclass
class SessionReport:
    backend: str
    bound: int
    index: int
    iterative: int
    lookup: int
    reference: int
    stages: Dict[str, StageMetrics] = field(default_factory=dict)

    @property
    def consistent(self) -> bool:
        return self.iterative == self.lookup == self.reference


def setup_keys(backend: FHEBackend) -> KeySession:
    """Generate keys client side and install the evaluation key (once)."""
    logger.info("Generating keys...")
    client_key, evaluation_key = backend.generate_keys()
    public_key = backend.derive_public_key(client_key)
    ctx = backend.install_evaluation_key(evaluation_key, public_key)
    return KeySession(backend, client_key, public_key, ctx)


def encrypt_index(backend: FHEBackend, index: int, bound: int,
                  client_key: ClientKey) -> EncryptedValue:
    """Encrypt a query index, refusing anything outside [0, bound]."""
    if not 0 <= index <= bound:
        raise DomainBoundExceeded(index, bound)
    logger.info("Encrypting value...")
    return backend.encrypt(index, client_key)


def decrypt_result(backend: FHEBackend, result: EncryptedResult,
                   client_key: ClientKey, bound: Optional[int] = None) -> int:
    """Decrypt an evaluation result; an unmatched index raises DomainBoundExceeded."""
    if backend.decrypt(result.in_range, client_key) != 1:
        raise DomainBoundExceeded("<encrypted>", bound if bound is not None else "?")
    return backend.decrypt(result.value, client_key)


def run_session(config: FibConfig, read_index: Callable[[int], int],
                backend: Optional[FHEBackend] = None) -> SessionReport:
    """Run every stage in order and return the collected results and timings.

    `read_index(bound)` supplies the plaintext index (the interactive prompt
    in the CLI). `backend` defaults to the one named in the config.
    """
    timer = StageTimer()

    with timer.stage("Keygen"):
        if backend is None:
            backend = create_backend(config.backend, width=config.width, seed=config.seed)
        keys = setup_keys(backend)

    index = read_index(config.bound)
    print(f"You entered: {index}")

    with timer.stage("Encrypt"):
        encrypted_index = encrypt_index(backend, index, config.bound, keys.client_key)

    with timer.stage("Setup"):
        tables = build_tables(config.bound, keys.public_key, backend, config.workers)
    evaluator = ObliviousEvaluator(keys.ctx, tables)

    logger.info("Computing Fibonacci number (iterative)...")
    with timer.stage("Iterative"):
        iterative = evaluator.iterative(encrypted_index)

    logger.info("Computing Fibonacci number (lookup)...")
    with timer.stage("Lookup"):
        lookup = evaluator.lookup(encrypted_index)

    with timer.stage("Decrypt"):
        iterative_value = decrypt_result(backend, iterative, keys.client_key, config.bound)
        lookup_value = decrypt_result(backend, lookup, keys.client_key, config.bound)

    reference = fibonacci_plaintext(index, config.width)
    if not iterative_value == lookup_value == reference:
        logger.error(
            f"Mismatch for n={index}: iterative={iterative_value} "
            f"lookup={lookup_value} reference={reference}"
        )

    return SessionReport(
        backend=backend.name,
        bound=config.bound,
        index=index,
        iterative=iterative_value,
        lookup=lookup_value,
        reference=reference,
        stages=timer.stages,
    )


def print_report(report: SessionReport, out=None):
    out = out or sys.stdout
    print(format_stage_table(report.stages), file=out)
    print(f"Setup (tables): {report.stages['Setup'].millis:.2f} ms", file=out)
    print(f"Iterative compute: {report.stages['Iterative'].millis:.2f} ms", file=out)
    print(f"Lookup compute: {report.stages['Lookup'].millis:.2f} ms", file=out)
    print(f"The Fibonacci number for {report.index} is {report.iterative} (iterative)", file=out)
    print(f"The Fibonacci number for {report.index} is {report.lookup} (lookup)", file=out)
    print(f"The Fibonacci number for {report.index} is {report.reference} (plaintext)", file=out)
    print("MATCH" if report.consistent else "MISMATCH", file=out)


@dataclass
class StrategyTiming:
    strategy: str
    queries: int
    mean_ms: float
    std_ms: float
    min_ms: float
    max_ms: float
    mismatches: List[int] = field(default_factory=list)

    @property
    def throughput(self) -> float:
        """Queries per second."""
        return 1000.0 / self.mean_ms if self.mean_ms > 0 else float("inf")


def benchmark_strategies(keys: KeySession, tables: Tables,
                         indices: Optional[Sequence[int]] = None) -> Dict[str, StrategyTiming]:
    """Time both strategies on every index (default: all of 0..bound).

    Also cross-checks each decrypted result against the plaintext reference;
    indices that disagree are listed in `mismatches`.
    """
    indices = list(range(tables.bound + 1)) if indices is None else list(indices)
    evaluator = ObliviousEvaluator(keys.ctx, tables)
    timings = {}

    for strategy in STRATEGIES:
        durations = []
        mismatches = []
        for n in indices:
            encrypted_index = encrypt_index(keys.backend, n, tables.bound, keys.client_key)
            t_start = time.perf_counter()
            result = evaluator.evaluate(encrypted_index, strategy)
            durations.append(time.perf_counter() - t_start)

            value = decrypt_result(keys.backend, result, keys.client_key, tables.bound)
            if value != fibonacci_plaintext(n, keys.backend.width):
                mismatches.append(n)

        millis = np.array(durations) * 1000
        timings[strategy] = StrategyTiming(
            strategy=strategy,
            queries=len(indices),
            mean_ms=float(np.mean(millis)),
            std_ms=float(np.std(millis)),
            min_ms=float(np.min(millis)),
            max_ms=float(np.max(millis)),
            mismatches=mismatches,
        )
        logger.info(
            f"[{strategy}] {len(indices)} queries, "
            f"avg {timings[strategy].mean_ms:.2f} ms, {len(mismatches)} mismatches"
        )
    return timings
