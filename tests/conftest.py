"""
Pytest configuration for the nl interpreter tests.

Provides:
- Hypothesis profiles for deterministic fuzzing of the codec and values
- Shared helpers for evaluating source text
"""

import os

from hypothesis import settings

from nl import Bits, Error, Value, eval_source


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile("default", print_blob=True, deadline=None)
settings.register_profile("ci", print_blob=True, deadline=None, max_examples=500)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


# =============================================================================
# Shared Test Utilities
# =============================================================================


def run(source: str) -> Value:
    """Evaluate source under an empty scope, failing the test on an Error."""
    result = eval_source(source)
    assert not isinstance(result, Error), str(result)
    return result


def word(text: str) -> Bits:
    return Bits.new(text.encode("utf-8"))
