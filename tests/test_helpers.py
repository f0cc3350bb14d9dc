# tests/test_helpers.py
# SPDX-License-Identifier: Apache-2.0
import argparse

import pytest

from lazy_farms.core.config import Settings
from lazy_farms.scripts import helpers
from lazy_farms.services.ids import to_evm_address


def test_readable_values():
    assert helpers.readable(to_evm_address("0.0.42")) == "0.0.42"
    alias = "0xAbCdEf" + "00" * 17
    assert helpers.readable(alias) == alias.lower()
    assert helpers.readable(b"\x01\x02") == "0x0102"
    assert helpers.readable((1, [to_evm_address("0.0.7")])) == [1, ["0.0.7"]]
    assert helpers.readable("plain") == "plain"


def test_print_table(capsys):
    helpers.print_table(
        [{"Name": "Mission", "Slots": 3}, {"Name": "A", "Slots": 10}], ["Name", "Slots"]
    )
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Name     Slots"
    assert lines[1] == "-------  -----"
    assert lines[2].startswith("Mission  3")
    helpers.print_table([], ["Name"])
    assert capsys.readouterr().out.strip() == "No data found."


def test_print_key_values(capsys):
    helpers.print_key_values({"Network": "testnet", "Id": "0.0.1"})
    assert capsys.readouterr().out.splitlines() == ["Network  testnet", "Id       0.0.1"]


def test_confirm_or_exit(monkeypatch, capsys):
    monkeypatch.setattr("builtins.input", lambda _: "Y")
    helpers.confirm_or_exit("Proceed?")
    monkeypatch.setattr("builtins.input", lambda _: "n")
    with pytest.raises(SystemExit) as err:
        helpers.confirm_or_exit("Proceed?")
    assert err.value.code == 0
    assert "User Aborted" in capsys.readouterr().out
    helpers.confirm_or_exit("Proceed?", assume_yes=True)


def test_resolve_contract(monkeypatch):
    monkeypatch.setattr(
        helpers, "settings", Settings.from_env({"MISSION_FACTORY_CONTRACT_ID": "0.0.9"})
    )
    assert helpers.resolve_contract("0.0.1", "MISSION_FACTORY_CONTRACT_ID") == "0.0.1"
    assert helpers.resolve_contract(None, "MISSION_FACTORY_CONTRACT_ID") == "0.0.9"
    with pytest.raises(SystemExit, match="BOOST_MANAGER_CONTRACT_ID"):
        helpers.resolve_contract(None, "BOOST_MANAGER_CONTRACT_ID")


def test_run_wraps_failures():
    def boom(args):
        raise ValueError("bad serials")

    args = argparse.Namespace(cmd="enter", verbose=False)
    with pytest.raises(SystemExit, match="lazy-mission enter failed: bad serials"):
        helpers.run({"enter": boom}, args, "lazy-mission")


def test_run_dispatches():
    seen = []
    helpers.run({"info": seen.append}, argparse.Namespace(cmd="info"), "prog")
    assert len(seen) == 1


def test_add_command_mutating_gets_yes():
    ap = helpers.build_parser("prog", "test")
    sub = ap.add_subparsers(dest="cmd", required=True)
    helpers.add_command(sub, "close", "Close", mutating=True)
    helpers.add_command(sub, "info", "Info")
    assert ap.parse_args(["--env", "TEST", "close", "-y"]).yes is True
    assert not hasattr(ap.parse_args(["info"]), "yes")


def test_show_views(capsys):
    answers = {"paused": (False,), "admins": ([to_evm_address("0.0.3"), to_evm_address("0.0.4")],)}
    out = helpers.show_views(lambda fn: answers[fn], ["paused", "admins"], ["Paused", "Admins"])
    assert out == {"paused": False, "admins": ["0.0.3", "0.0.4"]}
    printed = capsys.readouterr().out.splitlines()
    assert printed == ["Paused: False", "Admins: 0.0.3, 0.0.4"]


def test_write_log_file(tmp_path, capsys):
    path = helpers.write_log_file("Mission", "0.0.5", ["a", "b"], directory=tmp_path)
    assert path.name.startswith("Mission-logs-0.0.5-")
    assert path.read_text() == "a\nb"
    assert "Logs have been written" in capsys.readouterr().out
