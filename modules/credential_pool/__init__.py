"""
Credential Pool module exports.

Public API for API key rotation and health tracking.
"""

from .pool import (
    CredentialPool,
    CredentialPools,
    classify_failure,
    mask_key,
    parse_key_input
)
from .health import check_credential, check_all

__all__ = [
    "CredentialPool",
    "CredentialPools",
    "classify_failure",
    "mask_key",
    "parse_key_input",
    "check_credential",
    "check_all",
]
