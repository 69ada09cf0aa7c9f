# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test modules."""

import pytest

from sharedkey.accounts import AccountStore
from sharedkey.config import AccountConfig, ValidatorConfig
from sharedkey.logging import SecretFilter
from sharedkey.validator import SignatureValidator
from tests.vectors import ACCOUNT, NOW, SECRET


@pytest.fixture(autouse=True)
def _clear_secret_filter():
    """Keep registered log secrets from leaking between tests."""
    SecretFilter.clear_secrets()
    yield
    SecretFilter.clear_secrets()


@pytest.fixture
def store() -> AccountStore:
    """Account store holding the example account."""
    return AccountStore(
        [
            AccountConfig(
                account_id=ACCOUNT,
                secret=SECRET,
                claims=(("role", "subscriber-admin"),),
            )
        ]
    )


@pytest.fixture
def validator(store: AccountStore) -> SignatureValidator:
    """Validator backed by ``store`` with the clock pinned to ``NOW``."""
    return SignatureValidator(
        store.resolve,
        claims_provider=store.claims,
        config=ValidatorConfig(),
        clock=lambda: NOW,
    )
