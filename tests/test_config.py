# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for configuration loading."""

import os
from collections.abc import Iterator
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

import sharedkey.config as config_module
from sharedkey.config import (
    AccountConfig,
    ConfigError,
    SharedKeyConfig,
    ValidatorConfig,
    _EnvVar,
    _make_loader,
    _raw_resolve,
    decode_secret,
    get_config_path,
    load_dotenv_once,
)
from tests.vectors import ACCOUNT, SECRET, SECRET_B64


FULL_CONFIG = f"""\
validation:
  max_message_age: 120
  clock_skew: 5
accounts:
  {ACCOUNT}:
    secret: {SECRET_B64}
    claims:
      role: [subscriber-admin, reader]
      tenant: contoso
  other:
    secret: !env OTHER_SECRET
client:
  account: {ACCOUNT}
  secret: !env CLIENT_SECRET
"""


@pytest.fixture(autouse=True)
def _no_dotenv() -> Iterator[None]:
    """Keep developer .env files out of config tests."""
    with patch("sharedkey.config.load_dotenv_once"):
        yield


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "sharedkey.yaml"
    path.write_text(text)
    return path


class TestRawResolve:
    """Tests for _raw_resolve."""

    def test_literal(self) -> None:
        assert _raw_resolve("hello", name="x", required=True) == "hello"

    def test_int_stringified(self) -> None:
        assert _raw_resolve(42, name="x", required=True) == "42"

    def test_none_optional(self) -> None:
        assert _raw_resolve(None, name="x", required=False) is None

    def test_none_required(self) -> None:
        with pytest.raises(ConfigError, match="'x' is missing"):
            _raw_resolve(None, name="x", required=True)

    def test_envvar_set(self) -> None:
        with patch.dict("os.environ", {"MY_VAR": "val"}):
            assert (
                _raw_resolve(_EnvVar("MY_VAR"), name="x", required=True)
                == "val"
            )

    def test_envvar_unset_required(self) -> None:
        with (
            patch.dict("os.environ", {}, clear=True),
            pytest.raises(ConfigError, match="MISSING"),
        ):
            _raw_resolve(_EnvVar("MISSING"), name="x", required=True)


class TestYamlLoader:
    """Tests for YAML !env tag loading."""

    def test_env_tag_parsed(self) -> None:
        result = yaml.load("key: !env MY_VAR", Loader=_make_loader())
        assert isinstance(result["key"], _EnvVar)
        assert result["key"].var_name == "MY_VAR"

    def test_plain_values_unchanged(self) -> None:
        result = yaml.load("key: hello", Loader=_make_loader())
        assert result["key"] == "hello"


class TestDecodeSecret:
    """Tests for decode_secret."""

    def test_valid(self) -> None:
        assert decode_secret(f" {SECRET_B64}\n") == SECRET

    def test_invalid(self) -> None:
        with pytest.raises(ConfigError, match="'k' is not valid base64"):
            decode_secret("not base64!", name="k")

    def test_empty(self) -> None:
        with pytest.raises(ConfigError, match="empty"):
            decode_secret("")


class TestValidatorConfig:
    """Tests for ValidatorConfig."""

    def test_defaults(self) -> None:
        config = ValidatorConfig()
        assert config.max_message_age == timedelta(minutes=5)
        assert config.clock_skew == timedelta(0)

    @pytest.mark.parametrize("age", [timedelta(0), timedelta(seconds=-1)])
    def test_non_positive_age(self, age: timedelta) -> None:
        with pytest.raises(ConfigError, match="positive"):
            ValidatorConfig(max_message_age=age)

    def test_negative_skew(self) -> None:
        with pytest.raises(ConfigError, match="negative"):
            ValidatorConfig(clock_skew=timedelta(seconds=-1))


class TestAccountConfig:
    """Tests for AccountConfig."""

    @pytest.mark.parametrize("account_id", ["", "a:b"])
    def test_invalid_id(self, account_id: str) -> None:
        with pytest.raises(ConfigError, match="Account id"):
            AccountConfig(account_id=account_id, secret=SECRET)

    def test_empty_key(self) -> None:
        with pytest.raises(ConfigError, match="empty key"):
            AccountConfig(account_id=ACCOUNT, secret=b"")

    def test_repr_hides_key(self) -> None:
        assert SECRET_B64 not in repr(AccountConfig(ACCOUNT, SECRET))
        assert "secret" not in repr(AccountConfig(ACCOUNT, SECRET))


class TestFromYaml:
    """Tests for SharedKeyConfig.from_yaml."""

    def test_full_config(self, tmp_path: Path) -> None:
        path = _write(tmp_path, FULL_CONFIG)
        env = {"OTHER_SECRET": "AAAA", "CLIENT_SECRET": SECRET_B64}
        with patch.dict("os.environ", env):
            config = SharedKeyConfig.from_yaml(path)

        assert config.validation == ValidatorConfig(
            max_message_age=timedelta(seconds=120),
            clock_skew=timedelta(seconds=5),
        )
        assert set(config.accounts) == {ACCOUNT, "other"}
        assert config.accounts[ACCOUNT].secret == SECRET
        assert config.accounts[ACCOUNT].claims == (
            ("role", "subscriber-admin"),
            ("role", "reader"),
            ("tenant", "contoso"),
        )
        assert config.accounts["other"].secret == b"\x00\x00\x00"
        assert config.client is not None
        assert config.client.account_id == ACCOUNT
        assert config.client.secret == SECRET

    def test_empty_file(self, tmp_path: Path) -> None:
        config = SharedKeyConfig.from_yaml(_write(tmp_path, ""))
        assert config.validation == ValidatorConfig()
        assert config.accounts == {}
        assert config.client is None

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            SharedKeyConfig.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid YAML"):
            SharedKeyConfig.from_yaml(_write(tmp_path, "a: [unclosed"))

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="YAML mapping"):
            SharedKeyConfig.from_yaml(_write(tmp_path, "- a\n- b\n"))

    def test_unset_env_secret(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path, "accounts:\n  a:\n    secret: !env NOPE_SECRET\n"
        )
        with (
            patch.dict("os.environ", {}, clear=True),
            pytest.raises(ConfigError, match="NOPE_SECRET"),
        ):
            SharedKeyConfig.from_yaml(path)

    def test_bad_secret(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "accounts:\n  a:\n    secret: '***'\n")
        with pytest.raises(ConfigError, match="accounts.a.secret"):
            SharedKeyConfig.from_yaml(path)

    def test_bad_max_age(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "validation:\n  max_message_age: soon\n")
        with pytest.raises(ConfigError, match="must be a number"):
            SharedKeyConfig.from_yaml(path)

    @pytest.mark.parametrize("age", [".inf", ".nan", "1e20"])
    def test_out_of_range_max_age(self, tmp_path: Path, age: str) -> None:
        path = _write(tmp_path, f"validation:\n  max_message_age: {age}\n")
        with pytest.raises(ConfigError, match="max_message_age"):
            SharedKeyConfig.from_yaml(path)

    def test_account_not_mapping(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "accounts:\n  a: just-a-string\n")
        with pytest.raises(ConfigError, match="accounts.a must be"):
            SharedKeyConfig.from_yaml(path)

    def test_client_requires_account(self, tmp_path: Path) -> None:
        path = _write(tmp_path, f"client:\n  secret: {SECRET_B64}\n")
        with pytest.raises(ConfigError, match="client.account"):
            SharedKeyConfig.from_yaml(path)

    def test_default_path(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        with patch("sharedkey.config.get_config_path", return_value=path):
            assert SharedKeyConfig.from_yaml().accounts == {}


class TestPaths:
    """Tests for XDG path helpers."""

    def test_config_path(self, tmp_path: Path) -> None:
        with patch(
            "sharedkey.config.user_config_path",
            return_value=tmp_path / "sharedkey",
        ):
            assert get_config_path() == tmp_path / "sharedkey/sharedkey.yaml"


class TestLoadDotenvOnce:
    """Tests for load_dotenv_once."""

    def test_loads_cwd_env_once(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("SHAREDKEY_TEST_VAR=from-dotenv\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SHAREDKEY_TEST_VAR", raising=False)
        monkeypatch.setattr(config_module, "_dotenv_loaded", False)
        with patch(
            "sharedkey.config.user_config_path",
            return_value=tmp_path / "xdg",
        ):
            load_dotenv_once()
            assert os.environ["SHAREDKEY_TEST_VAR"] == "from-dotenv"

            os.environ["SHAREDKEY_TEST_VAR"] = "changed"
            (tmp_path / ".env").write_text("SHAREDKEY_TEST_VAR=again\n")
            load_dotenv_once()
            assert os.environ["SHAREDKEY_TEST_VAR"] == "changed"
