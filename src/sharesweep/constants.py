"""
Ledger and indexer constants.
"""

from __future__ import annotations

# Size model for a standard P2PKH transaction
TX_OVERHEAD_BYTES = 10
P2PKH_INPUT_BYTES = 148
P2PKH_OUTPUT_BYTES = 34

# Outputs assumed by every fee estimate (recipient + change). Sweep transactions
# only carry one output but are priced the same as a balance-time estimate.
FEE_MODEL_OUTPUT_COUNT = 2

# Fee rate presets in base units per byte
FEE_RATE_SLOW = 1.0
FEE_RATE_NORMAL = 5.0
FEE_RATE_FAST = 10.0
DEFAULT_FEE_RATE = FEE_RATE_NORMAL

SATOSHIS_PER_COIN = 100_000_000

# Indexer rate limiting
ENRICH_BATCH_SIZE = 5
ENRICH_BATCH_DELAY = 0.12  # seconds

BALANCE_POLL_INTERVAL = 25.0  # seconds

INDEXER_URL = "https://api.whatsonchain.com/v1/bsv"
USER_AGENT = "bsv-sss-ui"

# Transaction encoding
TX_VERSION = 1
TX_LOCKTIME = 0
SEQUENCE_FINAL = 0xFFFFFFFF
SIGHASH_ALL = 0x01
SIGHASH_FORKID = 0x40
SIGHASH_ALL_FORKID = SIGHASH_ALL | SIGHASH_FORKID
