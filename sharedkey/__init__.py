# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SharedKey HMAC request signing and validation."""

from sharedkey.accounts import AccountStore
from sharedkey.canonical import canonicalize, canonicalize_request
from sharedkey.compare import equals_constant_time
from sharedkey.config import ConfigError, SharedKeyConfig, ValidatorConfig
from sharedkey.integrity import body_checksum
from sharedkey.outcome import (
    Anonymous,
    Authenticated,
    Claim,
    Principal,
    Rejected,
    RejectionKind,
    ValidationOutcome,
)
from sharedkey.request import HttpRequest
from sharedkey.signing import (
    SCHEME,
    Credential,
    Signer,
    compute_signature,
    parse_credential,
    sign,
    sign_request,
)
from sharedkey.validator import SignatureValidator, ValidationState


__version__ = "0.1.0"

__all__ = [
    "SCHEME",
    "AccountStore",
    "Anonymous",
    "Authenticated",
    "Claim",
    "ConfigError",
    "Credential",
    "HttpRequest",
    "Principal",
    "Rejected",
    "RejectionKind",
    "SharedKeyConfig",
    "SignatureValidator",
    "Signer",
    "ValidationOutcome",
    "ValidationState",
    "ValidatorConfig",
    "body_checksum",
    "canonicalize",
    "canonicalize_request",
    "compute_signature",
    "equals_constant_time",
    "parse_credential",
    "sign",
    "sign_request",
]
