"""Security module for the SmartPOS realtime client.

Provides:
- Token providers for the realtime channel
- Masking of tokens in URLs and log output
"""

from smartpos_realtime.security.tokens import (
    EnvironmentTokenProvider,
    StaticTokenProvider,
    TokenProvider,
    mask_url_token,
)

__all__ = [
    "EnvironmentTokenProvider",
    "StaticTokenProvider",
    "TokenProvider",
    "mask_url_token",
]
