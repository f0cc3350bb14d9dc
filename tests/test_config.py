# tests/test_config.py
# SPDX-License-Identifier: Apache-2.0
import pytest
from eth_account import Account

from lazy_farms.core.clients import (
    ECDSA_DER_PREFIX,
    ED25519_DER_PREFIX,
    create_hedera_client,
    parse_private_key,
)
from lazy_farms.core.config import Settings, resolve_network
from lazy_farms.services.ids import to_evm_address

from .conftest import FakeResponse, FakeSession

KEY = "ab" * 32


def test_resolve_network_aliases():
    assert resolve_network("TEST").name == "testnet"
    assert resolve_network("main").name == "mainnet"
    assert resolve_network("previewnet").chain_id == 297
    assert resolve_network("LOCAL").mirror_url == "http://localhost:5551"


def test_resolve_network_rejects_unknown():
    with pytest.raises(ValueError, match="Must specify ENVIRONMENT"):
        resolve_network("")
    with pytest.raises(ValueError, match="MOON"):
        resolve_network("MOON")


def test_resolve_network_overrides():
    net = resolve_network("TEST", "http://mirror.local/", "http://relay.local")
    assert net.mirror_url == "http://mirror.local"
    assert net.relay_url == "http://relay.local"
    assert net.chain_id == 296


def test_settings_from_env_coerces_types():
    s = Settings.from_env(
        {
            "LAZY_DECIMALS": "8",
            "STAKING_CACHE_SUPRESS_LOGS": "true",
            "ACCOUNT_ID": " 0.0.5 ",
            "DIRECTUS_TOKEN": "",
        }
    )
    assert s.LAZY_DECIMALS == 8
    assert s.STAKING_CACHE_SUPRESS_LOGS is True
    assert s.ACCOUNT_ID == "0.0.5"
    assert s.LAZY_STAKING_CACHE_TABLE == "LazyEconomyCache"
    assert s.LAZY_BURN_PERCENT == 25


def test_settings_bad_integer_names_variable():
    with pytest.raises(ValueError, match="LAZY_DECIMALS"):
        Settings.from_env({"LAZY_DECIMALS": "one"})


def test_settings_hide_secrets():
    s = Settings.from_env({"PRIVATE_KEY": "supersecret", "SIGNING_KEY": "alsosecret"})
    assert "supersecret" not in repr(s)
    assert "alsosecret" not in repr(s)
    assert not s.has_operator


def test_parse_private_key_formats():
    assert parse_private_key(KEY) == "0x" + KEY
    assert parse_private_key("0x" + KEY.upper()) == "0x" + KEY
    assert parse_private_key(ECDSA_DER_PREFIX + KEY) == "0x" + KEY


def test_parse_private_key_rejects_ed25519_and_junk():
    with pytest.raises(ValueError, match="ED25519"):
        parse_private_key(ED25519_DER_PREFIX + KEY)
    with pytest.raises(ValueError):
        parse_private_key("abcd")
    with pytest.raises(ValueError):
        parse_private_key("zz" * 32)


def test_client_without_operator_reads_as_zero_address():
    client = create_hedera_client(Settings.from_env({"ENVIRONMENT": "TEST"}), require_operator=False)
    assert client.network.name == "testnet"
    assert client.account is None
    assert client.sender_address == "0x" + "0" * 40
    with pytest.raises(SystemExit):
        client.require_account()


def account_payload(evm_address: str, key_type: str = "ECDSA_SECP256K1") -> dict:
    return {"account": "0.0.1234", "evm_address": evm_address, "key": {"_type": key_type}}


def operator_settings(private_key: str) -> Settings:
    return Settings.from_env(
        {"ENVIRONMENT": "TEST", "ACCOUNT_ID": "0.0.1234", "PRIVATE_KEY": private_key}
    )


def test_client_operator_sender_is_ecdsa_address():
    acct = Account.create()
    session = FakeSession(FakeResponse(200, account_payload(acct.address.lower())))
    client = create_hedera_client(operator_settings(acct.key.hex()), session=session)
    assert client.operator_id == "0.0.1234"
    assert client.sender_address == acct.address.lower()
    assert session.calls[0][1].endswith("/api/v1/accounts/0.0.1234")


def test_client_rejects_key_of_another_account():
    # a raw ED25519 key parses as secp256k1 but derives an unrelated address
    session = FakeSession(FakeResponse(200, account_payload(to_evm_address("0.0.1234"))))
    with pytest.raises(SystemExit, match="does not belong to ACCOUNT_ID 0.0.1234"):
        create_hedera_client(operator_settings(KEY), session=session)


def test_client_rejects_ed25519_account():
    session = FakeSession(FakeResponse(200, account_payload(to_evm_address("0.0.1234"), "ED25519")))
    with pytest.raises(SystemExit, match="ED25519 account"):
        create_hedera_client(operator_settings(KEY), session=session)


def test_client_reports_der_ed25519_key():
    with pytest.raises(SystemExit) as err:
        create_hedera_client(operator_settings(ED25519_DER_PREFIX + KEY))
    assert "Invalid PRIVATE_KEY" in str(err.value)
    assert "ED25519" in str(err.value)
    assert "Must specify" not in str(err.value)


def test_client_unknown_operator_account():
    session = FakeSession(FakeResponse(404, {}))
    with pytest.raises(SystemExit, match="not found on testnet"):
        create_hedera_client(operator_settings(KEY), session=session)


def test_client_without_key_uses_long_zero_operator():
    cfg = Settings.from_env({"ENVIRONMENT": "TEST", "ACCOUNT_ID": "0.0.1234"})
    client = create_hedera_client(cfg, require_operator=False)
    assert client.sender_address == to_evm_address("0.0.1234")


def test_client_requirements_exit():
    with pytest.raises(SystemExit, match="PRIVATE_KEY"):
        create_hedera_client(Settings.from_env({"ENVIRONMENT": "TEST"}))
    with pytest.raises(SystemExit, match="ENVIRONMENT"):
        create_hedera_client(Settings.from_env({}), require_operator=False)
    with pytest.raises(SystemExit, match="DIRECTUS_DB_URL"):
        create_hedera_client(
            Settings.from_env({"ENVIRONMENT": "TEST"}),
            require_operator=False,
            require_env_vars=("DIRECTUS_DB_URL",),
        )
    with pytest.raises(SystemExit, match="SIGNING_KEY"):
        create_hedera_client(
            Settings.from_env({"ENVIRONMENT": "TEST"}),
            require_operator=False,
            require_signing_key=True,
        )


def test_environment_override_wins():
    cfg = Settings.from_env({"ENVIRONMENT": "TEST"})
    client = create_hedera_client(cfg, require_operator=False, environment="MAIN")
    assert client.network.name == "mainnet"
