"""
Interactive entry point: python -m oblivious_fib (or the oblivious-fib script).

Reads one index, runs both strategies on it and prints the stage table.
Configuration comes from the environment only (see config.load_config).
"""

import logging
import sys

from .config import load_config
from .custom_fhe import create_backend
from .errors import CapabilityError, ConfigError, DomainBoundExceeded, InputParseError
from .logging_utils import setup_logger
from .orchestrator import benchmark_strategies, print_report, run_session, setup_keys
from .tables import build_tables

logger = logging.getLogger(__name__)


def parse_index(raw: str, bound: int) -> int:
    text = raw.strip()
    digits = text[1:] if text[:1] in ("+", "-") else text
    # plain ASCII digits only: int() would also take "1_0" or "٣"
    if not (digits.isascii() and digits.isdigit()):
        raise InputParseError(f"Not a number: {text!r}")
    value = int(text)
    if value < 0:
        raise InputParseError(f"Negative index: {value}")
    if value > bound:
        raise DomainBoundExceeded(value, bound)
    return value


def prompt_index(bound: int, input_fn=None, out=None) -> int:
    """Ask until a number in [0, bound] is entered. EOFError propagates."""
    input_fn = input_fn or input
    out = out or sys.stdout
    while True:
        raw = input_fn(f"Enter a number (0-{bound}): ")
        try:
            return parse_index(raw, bound)
        except (InputParseError, DomainBoundExceeded) as e:
            logger.debug(f"Rejected input: {e}")
            print(f"Invalid input. Please enter a number between 0 and {bound}.", file=out)


def main() -> int:
    try:
        config = load_config()
    except ConfigError as e:
        setup_logger().error(str(e))
        return 1
    setup_logger(level=config.log_level)

    try:
        report = run_session(config, prompt_index)
    except CapabilityError as e:
        logger.error(f"FHE capability failure, aborting: {e}")
        return 1
    except (EOFError, KeyboardInterrupt):
        logger.error("No input, aborting")
        return 1

    print_report(report)
    return 0


def benchmark_main() -> int:
    """Time both strategies over every index 0..bound (oblivious-fib-bench)."""
    try:
        config = load_config()
    except ConfigError as e:
        setup_logger().error(str(e))
        return 1
    setup_logger(level=config.log_level)

    try:
        backend = create_backend(config.backend, width=config.width, seed=config.seed)
        keys = setup_keys(backend)
        tables = build_tables(config.bound, keys.public_key, backend, config.workers)
        timings = benchmark_strategies(keys, tables)
    except CapabilityError as e:
        logger.error(f"FHE capability failure, aborting: {e}")
        return 1

    print("=" * 70)
    print(f"{'STRATEGY':<12} | {'QUERIES':<8} | {'AVG (ms)':<10} | {'STD (ms)':<10} | {'MISMATCHES':<10}")
    print("-" * 70)
    for t in timings.values():
        print(f"{t.strategy:<12} | {t.queries:<8} | {t.mean_ms:<10.2f} | {t.std_ms:<10.2f} | {len(t.mismatches):<10}")
    print("=" * 70)
    return 0 if not any(t.mismatches for t in timings.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
