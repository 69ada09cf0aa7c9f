# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""In-memory account store.

``AccountStore`` maps account ids to shared keys and claims.  Its
``resolve`` and ``claims`` methods plug straight into
``SignatureValidator`` as the secret resolver and claims provider.
Hosts with a real secret store supply their own callables instead.
"""

import logging
from collections.abc import Iterable, Mapping

from sharedkey.config import AccountConfig, SharedKeyConfig
from sharedkey.logging import SecretFilter
from sharedkey.outcome import Claim


logger = logging.getLogger(__name__)


class AccountStore:
    """Read-only account id to key mapping.

    The mapping is built once; lookups never mutate it, so one store can
    serve any number of concurrent validations.
    """

    def __init__(self, accounts: Iterable[AccountConfig] = ()) -> None:
        """Initialize store.

        Args:
            accounts: Accounts to serve.  Every key is registered with
                ``SecretFilter`` for log redaction.
        """
        self._accounts: dict[str, AccountConfig] = {}
        for account in accounts:
            self._accounts[account.account_id] = account
            SecretFilter.register_key(account.secret)
        logger.debug("Account store holds %d accounts", len(self._accounts))

    @classmethod
    def from_secrets(cls, secrets: Mapping[str, bytes]) -> "AccountStore":
        """Build a store from an ``account -> key`` mapping."""
        return cls(
            AccountConfig(account_id=account_id, secret=secret)
            for account_id, secret in secrets.items()
        )

    @classmethod
    def from_config(cls, config: SharedKeyConfig) -> "AccountStore":
        """Build a store from the ``accounts`` section of a config."""
        return cls(config.accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._accounts

    def resolve(self, account_id: str) -> bytes | None:
        """Return the key for ``account_id``, or None if unknown."""
        account = self._accounts.get(account_id)
        return account.secret if account else None

    def claims(self, account_id: str) -> list[Claim]:
        """Return the configured extra claims for ``account_id``."""
        account = self._accounts.get(account_id)
        if account is None:
            return []
        return [Claim(kind, value) for kind, value in account.claims]
