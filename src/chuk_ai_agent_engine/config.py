# chuk_ai_agent_engine/config.py
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# Model used for token counting when none is given
DEFAULT_MODEL = os.getenv("CHUK_AGENT_DEFAULT_MODEL", "gpt-4o")

# Consecutive failures of one tool before the circuit breaker opens
DEFAULT_CIRCUIT_BREAKER_THRESHOLD = int(os.getenv("CHUK_AGENT_CIRCUIT_BREAKER_THRESHOLD", "3"))

# Fraction of the token budget that triggers the warning callback
DEFAULT_WARNING_THRESHOLD = float(os.getenv("CHUK_AGENT_WARNING_THRESHOLD", "0.8"))

# Non-system messages always retained by FIFO compression
DEFAULT_PRESERVE_RECENT = int(os.getenv("CHUK_AGENT_PRESERVE_RECENT", "3"))

# Iterations for strategies that do not declare phases
DEFAULT_MAX_ITERATIONS = int(os.getenv("CHUK_AGENT_MAX_ITERATIONS", "10"))
