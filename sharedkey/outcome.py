# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Identities and validation results.

Validation never raises for a bad request.  It returns one of three
values:

- ``Authenticated``: the signature checked out; carries the principal.
- ``Anonymous``: the request carried no usable SharedKey credential.  This
  is not an error; the host decides whether anonymous access is allowed.
- ``Rejected``: the request carried a credential but failed a check.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Claim:
    """A single identity claim.

    Attributes:
        type: Claim type, e.g. ``Claim.NAME``.
        value: Claim value.
    """

    type: str
    value: str

    #: Claim type carrying the identity name.
    NAME = "name"


@dataclass(frozen=True)
class Principal:
    """The identity behind a request.

    Attributes:
        name: Account identifier; empty for the anonymous principal.
        claims: Claims attached to the identity.
        authentication_type: Scheme that authenticated the principal, or
            None when unauthenticated.
    """

    name: str
    claims: tuple[Claim, ...] = ()
    authentication_type: str | None = None

    @classmethod
    def anonymous(cls) -> Principal:
        """Build the well-known anonymous principal."""
        return cls(name="")

    @property
    def is_authenticated(self) -> bool:
        """True if a scheme authenticated this principal."""
        return self.authentication_type is not None

    def claim_values(self, claim_type: str) -> list[str]:
        """Return the values of all claims of ``claim_type``."""
        return [c.value for c in self.claims if c.type == claim_type]


class RejectionKind(Enum):
    """Why a signed request was refused."""

    EXPIRED = "expired"
    UNKNOWN_ACCOUNT = "unknown_account"
    BODY_MISMATCH = "body_mismatch"
    BODY_TAMPERED = "body_tampered"
    SIGNATURE_INVALID = "signature_invalid"


@dataclass(frozen=True)
class Authenticated:
    """The request was signed by the principal's account."""

    principal: Principal

    accepted = True


@dataclass(frozen=True)
class Anonymous:
    """The request carried no SharedKey credential."""

    principal: Principal

    accepted = True


@dataclass(frozen=True)
class Rejected:
    """The request failed validation.

    Attributes:
        kind: Rejection category.
        reason: Human-readable explanation, safe to return to the client.
    """

    kind: RejectionKind
    reason: str

    accepted = False


ValidationOutcome = Authenticated | Anonymous | Rejected
