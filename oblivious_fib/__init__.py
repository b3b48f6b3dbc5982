"""
Oblivious Fibonacci over fully homomorphic encryption.

F(n) is computed for an encrypted index n with the same operations, in the
same order, for every n in [0, bound]. The FHE primitives come from a backend
in custom_fhe; the evaluator only uses add, eq and select.
"""

from .config import FibConfig, load_config
from .errors import (
    CapabilityError,
    ConfigError,
    DomainBoundExceeded,
    InputParseError,
    ObliviousFibError,
)
from .evaluator import EncryptedResult, ObliviousEvaluator, fibonacci_iterative, fibonacci_lookup
from .recurrence import fibonacci_plaintext, fibonacci_sequence, max_fibonacci_index
from .tables import Tables, build_fibonacci_table, build_index_table, build_tables

__all__ = [
    'CapabilityError',
    'ConfigError',
    'DomainBoundExceeded',
    'EncryptedResult',
    'FibConfig',
    'InputParseError',
    'ObliviousEvaluator',
    'ObliviousFibError',
    'Tables',
    'build_fibonacci_table',
    'build_index_table',
    'build_tables',
    'fibonacci_iterative',
    'fibonacci_lookup',
    'fibonacci_plaintext',
    'fibonacci_sequence',
    'load_config',
    'max_fibonacci_index',
]
