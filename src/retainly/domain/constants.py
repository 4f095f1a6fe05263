"""Centralized constants for the retainly scheduler.

All magic numbers and model defaults live here so every layer
imports from a single source of truth.
"""

# ---------- FSRS-4.5 forgetting curve ----------
DECAY = -0.5
FACTOR = 19.0 / 81.0  # R(S, S) == 0.9 by construction
REFERENCE_RETRIEVABILITY = 0.9

# ---------- Parameter set ----------
WEIGHT_COUNT = 17
MIN_RETENTION = 0.70
MAX_RETENTION = 0.97
DEFAULT_DESIRED_RETENTION = 0.9

# Published FSRS-4.5 defaults
DEFAULT_WEIGHTS = (
    0.4872,  # w0:  initial stability for Again
    1.4003,  # w1:  initial stability for Hard
    3.7145,  # w2:  initial stability for Good
    13.8206,  # w3:  initial stability for Easy
    5.1618,  # w4:  initial difficulty base
    1.2298,  # w5:  initial difficulty scaling
    0.8975,  # w6:  difficulty update rate
    0.031,  # w7:  mean reversion weight
    1.6474,  # w8:  stability increase base
    0.1367,  # w9:  stability-dependent decay of the increase
    1.0461,  # w10: retrievability-dependent increase
    2.1072,  # w11: post-lapse stability base
    0.0793,  # w12: difficulty factor for lapse
    0.3246,  # w13: stability factor for lapse
    1.587,  # w14: retrievability factor for lapse
    0.2272,  # w15: hard penalty
    2.8755,  # w16: easy bonus
)

# ---------- Memory state bounds ----------
MIN_STABILITY = 0.01  # days
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0
MIN_INTERVAL = 1  # days

# ---------- Dashboard ----------
DEFAULT_HISTORY_LIMIT = 10
