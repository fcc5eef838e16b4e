"""
Fee estimation for P2PKH transactions.
"""

from __future__ import annotations

import math
from decimal import Decimal

from sharesweep.constants import P2PKH_INPUT_BYTES, P2PKH_OUTPUT_BYTES, TX_OVERHEAD_BYTES
from sharesweep.models import FeeRates


def get_fee_rates() -> FeeRates:
    """Suggested fee rates (static presets)."""
    return FeeRates()


def estimate_size(input_count: int, output_count: int) -> int:
    """
    Estimate serialized transaction size in bytes.

    - 10 bytes overhead
    - ~148 bytes per P2PKH input (signature script included)
    - ~34 bytes per P2PKH output
    """
    if input_count < 0 or output_count < 0:
        raise ValueError("Input and output counts must be non-negative")
    return TX_OVERHEAD_BYTES + input_count * P2PKH_INPUT_BYTES + output_count * P2PKH_OUTPUT_BYTES


def estimate_fee(input_count: int, output_count: int, fee_rate: float) -> int:
    """
    Fee in base units for the estimated size at ``fee_rate`` per byte, rounded up.

    The rate goes through Decimal so values like 1.1 don't pick up float drift
    before the ceiling is applied.
    """
    if not math.isfinite(fee_rate) or fee_rate <= 0:
        raise ValueError(f"Fee rate must be a positive number, got {fee_rate}")
    size = estimate_size(input_count, output_count)
    return math.ceil(size * Decimal(str(fee_rate)))
