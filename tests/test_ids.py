# tests/test_ids.py
# SPDX-License-Identifier: Apache-2.0
import pytest

from lazy_farms.services.ids import (
    EntityId,
    format_token_amount,
    from_evm_address,
    is_long_zero,
    parse_comma_list,
    parse_entity_id,
    parse_int_list,
    parse_nested_list,
    parse_token_amount,
    to_evm_address,
    transaction_id_to_mirror,
)

LAZY_EVM = "0x000000000000000000000000000000000014013d"
ALIAS = "0x" + "ab" * 20


def test_entity_id_to_long_zero_address():
    assert parse_entity_id("0.0.1311037") == EntityId(0, 0, 1311037)
    assert to_evm_address("0.0.1311037") == LAZY_EVM
    assert from_evm_address(LAZY_EVM) == "0.0.1311037"


def test_evm_addresses_pass_through_lowercased():
    assert to_evm_address(LAZY_EVM.upper().replace("0X", "0x")) == LAZY_EVM
    assert to_evm_address(LAZY_EVM[2:]) == LAZY_EVM


def test_alias_addresses_are_not_entities():
    assert not is_long_zero(ALIAS)
    assert from_evm_address(ALIAS) is None
    with pytest.raises(ValueError):
        parse_entity_id(ALIAS)


def test_shard_and_realm_are_encoded():
    addr = to_evm_address("1.2.3")
    assert addr == "0x" + "00000001" + "0000000000000002" + "0000000000000003"
    assert not is_long_zero(addr)


@pytest.mark.parametrize("bad", ["", "0.0", "0.0.x", "abc"])
def test_parse_entity_id_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_entity_id(bad)


def test_list_parsing():
    assert parse_comma_list(" 0.0.1, 0.0.2,,0.0.3 ") == ["0.0.1", "0.0.2", "0.0.3"]
    assert parse_comma_list("") == []
    assert parse_int_list("1, 2,3") == [1, 2, 3]
    with pytest.raises(ValueError):
        parse_int_list("1,x")


def test_nested_serial_groups():
    assert parse_nested_list("1,2,3:4,5") == [[1, 2, 3], [4, 5]]
    assert parse_nested_list("7") == [[7]]
    with pytest.raises(ValueError):
        parse_nested_list("1,2::3")


def test_transaction_id_to_mirror():
    assert (
        transaction_id_to_mirror("0.0.3566849@1708780635.278906242")
        == "0.0.3566849-1708780635-278906242"
    )
    tx_hash = "0x" + "12" * 32
    assert transaction_id_to_mirror(tx_hash) == tx_hash


def test_format_token_amount():
    assert format_token_amount(125, 1) == "12.5"
    assert format_token_amount(125, 1, "$LAZY") == "12.5 $LAZY"
    assert format_token_amount(1234567, 1) == "123,456.7"
    assert format_token_amount(12345, 0) == "12,345"


def test_parse_token_amount_truncates():
    assert parse_token_amount("12.55", 1) == 125
    assert parse_token_amount("1,000", 1) == 10000
    assert parse_token_amount(2, 8) == 200_000_000
    with pytest.raises(ValueError):
        parse_token_amount("lots", 1)
