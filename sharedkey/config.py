# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for SharedKey signing and validation.

Configuration is loaded from a YAML file.  The default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/sharedkey/sharedkey.yaml``
    (typically ``~/.config/sharedkey/sharedkey.yaml``)

``!env`` tags resolve values from environment variables, so keys do not
have to live in the file itself.  A ``.env`` file next to the config (or
in the current directory) is loaded first.

Example::

    validation:
      max_message_age: 300
      clock_skew: 0
    accounts:
      barryd:
        secret: !env BARRYD_SECRET
        claims:
          role: subscriber-admin
    client:
      account: barryd
      secret: !env BARRYD_SECRET

Secrets are base64-encoded key bytes.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_path


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "sharedkey"

#: Default maximum age of a signed request.
DEFAULT_MAX_MESSAGE_AGE = timedelta(minutes=5)

_dotenv_loaded = False


class ConfigError(Exception):
    """Raised for invalid configuration or missing collaborators."""


def get_config_path() -> Path:
    """Return the default config file path.

    Returns:
        ``$XDG_CONFIG_HOME/sharedkey/sharedkey.yaml``.
    """
    return user_config_path(_APP_NAME) / "sharedkey.yaml"


def load_dotenv_once() -> None:
    """Load ``.env`` files once per process.

    Reads ``~/.config/sharedkey/.env`` first, then ``.env`` in the current
    directory.  Existing environment variables are never overwritten.
    """
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    from dotenv import load_dotenv

    for env_path in (
        user_config_path(_APP_NAME) / ".env",
        Path.cwd() / ".env",
    ):
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug("Loaded .env from %s", env_path)

    _dotenv_loaded = True


# ---------------------------------------------------------------------------
# YAML tags
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def _raw_resolve(value: object, *, name: str, required: bool) -> str | None:
    """Resolve an ``_EnvVar`` or stringify a literal.

    Raises:
        ConfigError: If required and the value (or env var) is missing.
    """
    if isinstance(value, _EnvVar):
        resolved = os.environ.get(value.var_name)
        if resolved is None and required:
            raise ConfigError(
                f"Required config '{name}': environment variable "
                f"'{value.var_name}' is not set"
            )
        return resolved
    if value is None:
        if required:
            raise ConfigError(f"Required config '{name}' is missing")
        return None
    return str(value)


def _resolve_seconds(
    value: object, *, name: str, default: timedelta
) -> timedelta:
    raw = _raw_resolve(value, name=name, required=False)
    if raw is None:
        return default
    try:
        return timedelta(seconds=float(raw))
    except (ValueError, OverflowError) as e:
        raise ConfigError(f"Config '{name}' must be a number: {raw!r}") from e


def decode_secret(value: str, *, name: str = "secret") -> bytes:
    """Decode a base64 secret into key bytes.

    Args:
        value: Base64 text.
        name: Config path, used in error messages.

    Returns:
        Key bytes.

    Raises:
        ConfigError: If the value is not base64 or decodes to nothing.
    """
    try:
        key = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigError(f"Config '{name}' is not valid base64") from e
    if not key:
        raise ConfigError(f"Config '{name}' is empty")
    return key


# ---------------------------------------------------------------------------
# Configuration objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidatorConfig:
    """Settings for ``SignatureValidator``.

    Attributes:
        max_message_age: Oldest request timestamp accepted.
        clock_skew: Extra allowance for sender clocks that run behind
            (added to ``max_message_age``) or ahead (how far in the future
            a timestamp may be).
    """

    max_message_age: timedelta = DEFAULT_MAX_MESSAGE_AGE
    clock_skew: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If either duration is out of range.
        """
        if self.max_message_age <= timedelta(0):
            raise ConfigError(
                f"Maximum message age must be positive: {self.max_message_age}"
            )
        if self.clock_skew < timedelta(0):
            raise ConfigError(
                f"Clock skew must not be negative: {self.clock_skew}"
            )


@dataclass(frozen=True)
class AccountConfig:
    """A receiving-side account.

    Attributes:
        account_id: Account identifier used in credentials.
        secret: Shared key bytes.
        claims: Extra claims issued on successful validation.
    """

    account_id: str
    secret: bytes = field(repr=False)
    claims: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If the account id contains a colon or the key is
                empty.
        """
        if not self.account_id or ":" in self.account_id:
            raise ConfigError(
                f"Account id must be non-empty and contain no ':': "
                f"{self.account_id!r}"
            )
        if not self.secret:
            raise ConfigError(f"Account '{self.account_id}' has an empty key")


@dataclass(frozen=True)
class ClientConfig:
    """Sending-side credentials.

    Attributes:
        account_id: Account to sign as.
        secret: Shared key bytes.
    """

    account_id: str
    secret: bytes = field(repr=False)


@dataclass(frozen=True)
class SharedKeyConfig:
    """Complete configuration file contents.

    Attributes:
        validation: Validator settings.
        accounts: Receiving-side accounts keyed by account id.
        client: Sending-side credentials, if configured.
    """

    validation: ValidatorConfig = field(default_factory=ValidatorConfig)
    accounts: dict[str, AccountConfig] = field(default_factory=dict)
    client: ClientConfig | None = None

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "SharedKeyConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML file.  Defaults to
                ``~/.config/sharedkey/sharedkey.yaml`` (XDG).

        Returns:
            SharedKeyConfig instance.

        Raises:
            ConfigError: If the file is missing or a value is invalid.
        """
        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            try:
                raw = yaml.load(f, Loader=_make_loader())
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls.from_dict(raw)
        logger.info(
            "Config loaded from %s: %d accounts, max age %s",
            config_path,
            len(config.accounts),
            config.validation.max_message_age,
        )
        return config

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SharedKeyConfig":
        """Build config from a parsed (but unresolved) YAML mapping."""
        validation_raw = raw.get("validation") or {}
        if not isinstance(validation_raw, dict):
            raise ConfigError("'validation' must be a YAML mapping")

        validation = ValidatorConfig(
            max_message_age=_resolve_seconds(
                validation_raw.get("max_message_age"),
                name="validation.max_message_age",
                default=DEFAULT_MAX_MESSAGE_AGE,
            ),
            clock_skew=_resolve_seconds(
                validation_raw.get("clock_skew"),
                name="validation.clock_skew",
                default=timedelta(0),
            ),
        )

        accounts_raw = raw.get("accounts") or {}
        if not isinstance(accounts_raw, dict):
            raise ConfigError("'accounts' must be a YAML mapping")

        accounts: dict[str, AccountConfig] = {}
        for account_id, account_raw in accounts_raw.items():
            account_id = str(account_id)
            accounts[account_id] = _parse_account(account_id, account_raw)

        return cls(
            validation=validation,
            accounts=accounts,
            client=_parse_client(raw.get("client")),
        )


def _parse_account(account_id: str, raw: object) -> AccountConfig:
    prefix = f"accounts.{account_id}"
    if not isinstance(raw, dict):
        raise ConfigError(f"{prefix} must be a YAML mapping")

    secret = _raw_resolve(
        raw.get("secret"), name=f"{prefix}.secret", required=True
    )
    assert secret is not None

    claims_raw = raw.get("claims") or {}
    if not isinstance(claims_raw, dict):
        raise ConfigError(f"{prefix}.claims must be a YAML mapping")

    claims: list[tuple[str, str]] = []
    for claim_type, claim_value in claims_raw.items():
        name = f"{prefix}.claims.{claim_type}"
        values = claim_value if isinstance(claim_value, list) else [claim_value]
        for value in values:
            resolved = _raw_resolve(value, name=name, required=True)
            assert resolved is not None
            claims.append((str(claim_type), resolved))

    return AccountConfig(
        account_id=account_id,
        secret=decode_secret(secret, name=f"{prefix}.secret"),
        claims=tuple(claims),
    )


def _parse_client(raw: object) -> ClientConfig | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ConfigError("'client' must be a YAML mapping")

    account_id = _raw_resolve(
        raw.get("account"), name="client.account", required=True
    )
    secret = _raw_resolve(
        raw.get("secret"), name="client.secret", required=True
    )
    assert account_id is not None and secret is not None
    return ClientConfig(
        account_id=account_id,
        secret=decode_secret(secret, name="client.secret"),
    )
