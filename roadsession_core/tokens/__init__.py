"""RoadSession Tokens - Token codec collaborators.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from roadsession_core.tokens.codec import (
    HMACTokenCodec,
    TokenAlgorithm,
    TokenCodec,
    correlate_token,
)

__all__ = [
    "TokenCodec",
    "TokenAlgorithm",
    "HMACTokenCodec",
    "correlate_token",
]
