from __future__ import annotations

from pathlib import Path

import pytest

from rfind.cli import VERSION, help_text, main, parse_options, parse_paths
from rfind.core import SymlinkPolicy
from rfind.parser import GlobalOptionRequested


def touch(p: Path, data: bytes = b"") -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)


def test_cli_prints_entries(tmp_path: Path, capsys):
    (tmp_path / "a").mkdir()
    touch(tmp_path / "a" / "b.txt")

    rc = main([str(tmp_path), "-name", "*.txt"])
    assert rc == 0
    out = capsys.readouterr().out
    assert out.splitlines() == [str(tmp_path / "a" / "b.txt")]


def test_cli_print0(tmp_path: Path, capsys):
    touch(tmp_path / "x")
    rc = main([str(tmp_path), "-name", "x", "-print0"])
    assert rc == 0
    assert capsys.readouterr().out == str(tmp_path / "x") + "\0"


def test_cli_default_path(tmp_path: Path, capsys, monkeypatch):
    touch(tmp_path / "f")
    monkeypatch.chdir(tmp_path)
    assert main([]) == 0
    assert capsys.readouterr().out.splitlines() == [".", "./f"]


def test_cli_empty_directories(tmp_path: Path, capsys):
    (tmp_path / "hollow").mkdir()
    touch(tmp_path / "full" / "f", b"x")
    assert main([str(tmp_path), "-empty", "-type", "d"]) == 0
    assert capsys.readouterr().out.splitlines() == [str(tmp_path / "hollow")]


def test_cli_help_and_version(capsys):
    assert main(["--help"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Usage: rfind [-H] [-L] [-P]")
    assert "-iname PATTERN" in out
    assert "-print0" in out
    assert out == help_text()

    assert main([".", "-name", "x", "--version"]) == 0
    assert capsys.readouterr().out == VERSION + "\n"


def test_cli_unknown_long_option(capsys):
    assert main(["--bogus"]) == 1
    assert "rfind: unknown option --bogus" in capsys.readouterr().err


def test_cli_parse_errors(tmp_path: Path, capsys):
    assert main([str(tmp_path), "-name"]) == 1
    out, err = capsys.readouterr()
    assert out == ""
    assert err == "rfind: missing argument for -name test.\n"

    assert main([str(tmp_path), "-frobnicate"]) == 1
    assert "rfind: invalid expression -frobnicate" in capsys.readouterr().err

    assert main([str(tmp_path), "-name", "a", ")"]) == 1
    assert "unexpected ')'" in capsys.readouterr().err


def test_cli_missing_root(tmp_path: Path, capsys):
    touch(tmp_path / "here")
    rc = main([str(tmp_path / "gone"), str(tmp_path / "here")])
    out, err = capsys.readouterr()
    assert rc == 1
    assert out.splitlines() == [str(tmp_path / "here")]
    assert "unable to get file" in err


def test_cli_follow_loop(tmp_path: Path, capsys):
    d = tmp_path / "d"
    d.mkdir()
    try:
        (d / "loop").symlink_to(d)
    except OSError:
        pytest.skip("symlink not supported")

    assert main(["-L", str(d)]) == 0
    out, err = capsys.readouterr()
    assert out.splitlines() == [str(d)]
    assert "File system loop detected" in err


def test_parse_options_last_wins():
    opts, pos = parse_options(["-L", "-P", "-H", "dir", "-L"])
    assert opts.symlinks is SymlinkPolicy.EXPLICIT_SYMLINKS
    assert pos == 3

    opts, pos = parse_options(["-name", "x"])
    assert opts.symlinks is SymlinkPolicy.NO_SYMLINKS
    assert pos == 0

    with pytest.raises(GlobalOptionRequested):
        parse_options(["-L", "--version"])


def test_parse_options_debug(capsys):
    opts, pos = parse_options(["-D", "stat,tree", "-L"])
    assert opts.debug.cats == {"stat", "tree"}
    assert opts.debug.on("tree") and not opts.debug.on("search")
    assert pos == 3

    with pytest.raises(ValueError):
        parse_options(["-D", "bogus"])
    with pytest.raises(ValueError):
        parse_options(["-D"])

    with pytest.raises(GlobalOptionRequested):
        parse_options(["-D", "help"])

    assert main(["-D", "help"]) == 0
    assert "Valid arguments for -D" in capsys.readouterr().out


def test_cli_debug_errors(capsys):
    assert main(["-D", "nope"]) == 1
    assert "rfind: unknown debug option: nope" in capsys.readouterr().err


def test_cli_debug_tree(tmp_path: Path, capsys):
    assert main(["-D", "tree", str(tmp_path), "-name", "zzz"]) == 0
    err = capsys.readouterr().err
    assert "[DEBUG:tree] tree: ( -name zzz -a -print )" in err


def test_parse_paths():
    assert parse_paths(["a", "b", "-name", "x"], 0) == (["a", "b"], 2)
    assert parse_paths(["a", "!", "-empty"], 0) == (["a"], 1)
    assert parse_paths(["a", "(", "-empty", ")"], 0) == (["a"], 1)
    assert parse_paths(["-empty"], 0) == (["."], 0)
    assert parse_paths([], 0) == (["."], 0)
