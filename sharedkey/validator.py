# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SharedKey request validation.

``SignatureValidator.validate`` runs a fixed sequence of checks.  Each
check either advances the validation to the next state or ends it with a
final outcome:

    START
      -> FRESHNESS_CHECKED    (Rejected: EXPIRED)
      -> CREDENTIAL_PARSED    (Anonymous: no usable credential)
      -> SECRET_RESOLVED      (Rejected: UNKNOWN_ACCOUNT)
      -> BODY_VERIFIED        (Rejected: BODY_MISMATCH / BODY_TAMPERED)
      -> SIGNATURE_COMPARED   (Rejected: SIGNATURE_INVALID)
      -> AUTHENTICATED

Rejections are returned as values.  Exceptions raised by the host's
resolver or claims provider are not caught: they indicate a broken host,
not a bad request.
"""

from __future__ import annotations

import email.utils
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from enum import Enum

from sharedkey.compare import equals_constant_time
from sharedkey.config import ConfigError, ValidatorConfig
from sharedkey.integrity import CHECKSUM_HEADER, verify_body
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
    parse_credential,
    split_authorization,
)


logger = logging.getLogger(__name__)

SecretResolver = Callable[[str], bytes | None]
ClaimsProvider = Callable[[str], Iterable[Claim]]
Clock = Callable[[], datetime]

#: Timestamp headers in order of precedence.
TIMESTAMP_HEADERS = ("x-ms-date", "date")

_REASONS = {
    RejectionKind.UNKNOWN_ACCOUNT: "Unknown account.",
    RejectionKind.BODY_MISMATCH: (
        "Content-MD5 header must be specified when a request body is "
        "included."
    ),
    RejectionKind.BODY_TAMPERED: "Content-MD5 does not match the request body.",
    RejectionKind.SIGNATURE_INVALID: "Signature validation failed.",
}


class ValidationState(Enum):
    """Progress of a single validation."""

    START = "start"
    FRESHNESS_CHECKED = "freshness_checked"
    CREDENTIAL_PARSED = "credential_parsed"
    SECRET_RESOLVED = "secret_resolved"
    BODY_VERIFIED = "body_verified"
    SIGNATURE_COMPARED = "signature_compared"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"
    REJECTED = "rejected"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str) -> datetime | None:
    """Parse an RFC 1123 timestamp header.

    Returns:
        Aware datetime (UTC if the header carries no zone), or None if the
        value cannot be parsed.
    """
    try:
        parsed = email.utils.parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class _Validation:
    """Per-request state.  Holds the resolved key for one call only."""

    __slots__ = ("request", "state", "credential", "key")

    def __init__(self, request: HttpRequest) -> None:
        self.request = request
        self.state = ValidationState.START
        self.credential: Credential | None = None
        self.key: bytes | None = None


class SignatureValidator:
    """Validates SharedKey-signed requests.

    The validator keeps no per-request state, so a single instance can be
    shared between threads.

    Attributes:
        config: Freshness settings.
    """

    def __init__(
        self,
        resolver: SecretResolver,
        *,
        claims_provider: ClaimsProvider | None = None,
        config: ValidatorConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize validator.

        Args:
            resolver: Returns the shared key for an account id, or None.
            claims_provider: Returns extra claims for an authenticated
                account.
            config: Freshness settings.  Defaults to a five minute window.
            clock: Returns the current aware datetime.  Defaults to UTC
                wall-clock time.

        Raises:
            ConfigError: If a collaborator is missing or not callable.
        """
        if resolver is None or not callable(resolver):
            raise ConfigError("A secret resolver callable is required")
        if claims_provider is not None and not callable(claims_provider):
            raise ConfigError("Claims provider must be callable")
        if clock is not None and not callable(clock):
            raise ConfigError("Clock must be callable")

        self._resolver = resolver
        self._claims_provider = claims_provider
        self._clock = clock or _utc_now
        self.config = config or ValidatorConfig()

    def validate(self, request: HttpRequest) -> ValidationOutcome:
        """Validate a received request.

        Args:
            request: The request as received.

        Returns:
            ``Authenticated``, ``Anonymous`` or ``Rejected``.
        """
        validation = _Validation(request)
        steps = (
            self._check_freshness,
            self._parse_credential,
            self._resolve_secret,
            self._verify_body,
            self._compare_signature,
        )
        for step in steps:
            outcome = step(validation)
            if outcome is not None:
                return self._finish(validation, outcome)
        return self._finish(validation, self._issue_principal(validation))

    # -- steps -------------------------------------------------------------

    def _check_freshness(
        self, validation: _Validation
    ) -> ValidationOutcome | None:
        raw = None
        for name in TIMESTAMP_HEADERS:
            raw = validation.request.header(name)
            if raw is not None:
                break

        if raw is not None:
            timestamp = parse_timestamp(raw)
            if timestamp is None:
                return Rejected(
                    RejectionKind.EXPIRED, "Request timestamp is malformed."
                )
            window = self.config.max_message_age + self.config.clock_skew
            age = self._clock() - timestamp
            if age > window:
                return Rejected(RejectionKind.EXPIRED, "Request expired.")
            if -age > window:
                return Rejected(
                    RejectionKind.EXPIRED,
                    "Request timestamp is too far in the future.",
                )

        validation.state = ValidationState.FRESHNESS_CHECKED
        return None

    def _parse_credential(
        self, validation: _Validation
    ) -> ValidationOutcome | None:
        header = validation.request.header("authorization")
        if header is None:
            return Anonymous(Principal.anonymous())

        scheme, parameter = split_authorization(header)
        if scheme != SCHEME or not parameter:
            return Anonymous(Principal.anonymous())

        credential = parse_credential(parameter)
        if credential is None:
            logger.debug("Ignoring unparseable %s credential", SCHEME)
            return Anonymous(Principal.anonymous())

        validation.credential = credential
        validation.state = ValidationState.CREDENTIAL_PARSED
        return None

    def _resolve_secret(
        self, validation: _Validation
    ) -> ValidationOutcome | None:
        assert validation.credential is not None
        key = self._resolver(validation.credential.account_id)
        if not key:
            return Rejected(
                RejectionKind.UNKNOWN_ACCOUNT,
                _REASONS[RejectionKind.UNKNOWN_ACCOUNT],
            )

        validation.key = bytes(key)
        validation.state = ValidationState.SECRET_RESOLVED
        return None

    def _verify_body(self, validation: _Validation) -> ValidationOutcome | None:
        request = validation.request
        kind = verify_body(request.body, request.header(CHECKSUM_HEADER))
        if kind is not None:
            return Rejected(kind, _REASONS[kind])

        validation.state = ValidationState.BODY_VERIFIED
        return None

    def _compare_signature(
        self, validation: _Validation
    ) -> ValidationOutcome | None:
        assert validation.credential is not None
        assert validation.key is not None
        expected = Signer(validation.key).sign_request(
            validation.request, validation.credential.account_id
        )
        if not equals_constant_time(validation.credential.signature, expected):
            return Rejected(
                RejectionKind.SIGNATURE_INVALID,
                _REASONS[RejectionKind.SIGNATURE_INVALID],
            )

        validation.state = ValidationState.SIGNATURE_COMPARED
        return None

    def _issue_principal(self, validation: _Validation) -> Authenticated:
        assert validation.credential is not None
        account_id = validation.credential.account_id
        claims = [Claim(Claim.NAME, account_id)]
        if self._claims_provider is not None:
            claims.extend(self._claims_provider(account_id))
        return Authenticated(
            Principal(
                name=account_id,
                claims=tuple(claims),
                authentication_type=SCHEME,
            )
        )

    # -- bookkeeping -------------------------------------------------------

    def _finish(
        self, validation: _Validation, outcome: ValidationOutcome
    ) -> ValidationOutcome:
        request = validation.request
        account = (
            validation.credential.account_id if validation.credential else "-"
        )
        previous = validation.state
        validation.key = None

        if isinstance(outcome, Rejected):
            validation.state = ValidationState.REJECTED
            logger.warning(
                "Rejected %s %s (account %s, after %s): %s",
                request.method.upper(),
                request.path,
                account,
                previous.value,
                outcome.kind.value,
            )
        elif isinstance(outcome, Anonymous):
            validation.state = ValidationState.ANONYMOUS
            logger.debug(
                "No %s credential on %s %s",
                SCHEME,
                request.method.upper(),
                request.path,
            )
        else:
            validation.state = ValidationState.AUTHENTICATED
            logger.debug(
                "Authenticated %s %s as %s",
                request.method.upper(),
                request.path,
                account,
            )
        return outcome
