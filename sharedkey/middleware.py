# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""WSGI middleware that validates SharedKey requests.

Wrap any WSGI application::

    store = AccountStore.from_config(config)
    validator = SignatureValidator(
        store.resolve, claims_provider=store.claims, config=config.validation
    )
    app = SharedKeyMiddleware(app, validator)

Accepted requests (authenticated or anonymous) reach the wrapped app with
the principal stored in the environ; use ``get_principal(environ)`` to read
it.  Deciding what an anonymous caller may do is left to the app.

Rejected requests never reach the app.  They are answered directly:

- ``UNKNOWN_ACCOUNT``: 401 Unauthorized
- ``BODY_TAMPERED``: 412 Precondition Failed
- everything else: 403 Forbidden
"""

import io
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from werkzeug.wrappers.response import StartResponse

from werkzeug.wrappers import Request, Response

from sharedkey.outcome import Principal, Rejected, RejectionKind
from sharedkey.request import HttpRequest, parse_query
from sharedkey.signing import SCHEME
from sharedkey.validator import SignatureValidator


logger = logging.getLogger(__name__)

#: WSGI environ key holding the request's ``Principal``.
PRINCIPAL_ENVIRON_KEY = "sharedkey.principal"

WSGIApp = Callable[[dict[str, Any], "StartResponse"], Iterable[bytes]]

_STATUS_BY_KIND = {
    RejectionKind.UNKNOWN_ACCOUNT: 401,
    RejectionKind.EXPIRED: 403,
    RejectionKind.BODY_MISMATCH: 403,
    RejectionKind.SIGNATURE_INVALID: 403,
    RejectionKind.BODY_TAMPERED: 412,
}


def status_for(kind: RejectionKind) -> int:
    """Return the HTTP status code for a rejection kind."""
    return _STATUS_BY_KIND[kind]


def request_from_werkzeug(request: Request) -> HttpRequest:
    """Convert a werkzeug request to an HttpRequest.

    Reads (and caches) the request body.

    Args:
        request: Incoming werkzeug request.

    Returns:
        HttpRequest with the full path (script root included).
    """
    return HttpRequest(
        method=request.method,
        path=request.root_path + request.path,
        query=parse_query(request.query_string),
        headers=tuple(request.headers.items()),
        body=request.get_data(cache=True),
    )


def get_principal(environ: dict[str, Any]) -> Principal:
    """Return the principal stored by ``SharedKeyMiddleware``.

    Falls back to the anonymous principal when the middleware did not
    run.
    """
    principal = environ.get(PRINCIPAL_ENVIRON_KEY)
    if isinstance(principal, Principal):
        return principal
    return Principal.anonymous()


class SharedKeyMiddleware:
    """Validates every request before it reaches the wrapped application."""

    def __init__(self, app: WSGIApp, validator: SignatureValidator) -> None:
        """Initialize middleware.

        Args:
            app: WSGI application to protect.
            validator: Validator to run on each request.
        """
        self.app = app
        self.validator = validator

    def __call__(
        self,
        environ: dict[str, Any],
        start_response: "StartResponse",
    ) -> Iterable[bytes]:
        """WSGI entry point.

        Args:
            environ: WSGI environ dict.
            start_response: WSGI start_response callable.

        Returns:
            Response body iterable.
        """
        request = Request(environ)
        http_request = request_from_werkzeug(request)

        # The body stream was consumed above; hand the app a fresh one
        environ["wsgi.input"] = io.BytesIO(http_request.body)
        environ["CONTENT_LENGTH"] = str(len(http_request.body))

        outcome = self.validator.validate(http_request)
        if isinstance(outcome, Rejected):
            return self._reject(outcome)(environ, start_response)

        environ[PRINCIPAL_ENVIRON_KEY] = outcome.principal
        return self.app(environ, start_response)

    def _reject(self, outcome: Rejected) -> Response:
        status = status_for(outcome.kind)
        logger.debug(
            "Answering %s rejection with %d", outcome.kind.value, status
        )
        response = Response(
            outcome.reason, status=status, mimetype="text/plain"
        )
        if status == 401:
            response.headers["WWW-Authenticate"] = SCHEME
        return response
