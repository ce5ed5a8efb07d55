"""
pwfile - Command Line Tests

Drives pwfile.cli.main() end-to-end with the built-in backend and a fake
clipboard. Run with: pytest test_cli.py
"""

import functools
import os
import stat

import pyperclip
import pytest

from pwfile import cli, config
from pwfile.crypto import PassphraseCipher
from pwfile.errors import ClipboardError, ErrorKind, InvalidArgument, PwError

TEST_N = 2**10


@pytest.fixture
def clipboard(monkeypatch):
    copied = []
    monkeypatch.setattr(pyperclip, "copy", copied.append)
    return copied


@pytest.fixture
def pwfile_path(tmp_path, monkeypatch):
    for var in ("PW_FILE", "PW_PASSWORD_LENGTH", "PW_PASSWORD_CHARSET"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("PW_BACKEND", "builtin")
    monkeypatch.setenv("PW_PASSPHRASE", "test passphrase")
    monkeypatch.setattr(cli, "PassphraseCipher", functools.partial(PassphraseCipher, n=TEST_N))
    return str(tmp_path / "pw.dat")


def run(path, *args):
    return cli.main(["-f", path] + list(args))


def test_init_and_list_empty(pwfile_path, capsys):
    assert run(pwfile_path, "init") == 0
    assert capsys.readouterr().out == f"{pwfile_path} initialized\n"
    assert stat.S_IMODE(os.stat(pwfile_path).st_mode) == 0o600

    assert run(pwfile_path, "list") == 0
    assert capsys.readouterr().out == ""


def test_init_twice_fails(pwfile_path, capsys):
    assert run(pwfile_path, "init") == 0
    assert run(pwfile_path, "init") == 1
    assert "Error: password file already exists" in capsys.readouterr().err


def test_add_get_list(pwfile_path, capsys, clipboard):
    run(pwfile_path, "init")
    assert run(pwfile_path, "add", "github", "alice") == 0
    assert run(pwfile_path, "add", "bank", "") == 0
    assert len(clipboard) == 2
    password = clipboard[0]
    assert len(password) == config.DEFAULT_PASSWORD_LENGTH
    assert set(password) <= set(config.DEFAULT_PASSWORD_CHARSET)
    capsys.readouterr()

    assert run(pwfile_path, "get", "github") == 0
    assert capsys.readouterr().out == "alice\n"
    assert clipboard[-1] == password

    # Empty username: nothing printed, password still copied
    assert run(pwfile_path, "get", "bank") == 0
    assert capsys.readouterr().out == ""
    assert clipboard[-1] == clipboard[1]

    assert run(pwfile_path, "list") == 0
    assert capsys.readouterr().out == "github: alice\nbank: \n"


def test_add_duplicate_fails(pwfile_path, capsys, clipboard):
    run(pwfile_path, "init")
    run(pwfile_path, "add", "github", "alice")
    assert run(pwfile_path, "add", "github", "bob") == 1
    assert "Error: password already exists: github" in capsys.readouterr().err
    assert len(clipboard) == 1


def test_update_and_remove(pwfile_path, capsys, clipboard):
    run(pwfile_path, "init")
    run(pwfile_path, "add", "a", "u1")
    run(pwfile_path, "add", "b", "u2")
    run(pwfile_path, "add", "c", "u3")
    old = clipboard[1]

    assert run(pwfile_path, "update", "b", "new-user") == 0
    new = clipboard[-1]
    assert new != old
    capsys.readouterr()

    run(pwfile_path, "list")
    assert capsys.readouterr().out == "a: u1\nb: new-user\nc: u3\n"

    assert run(pwfile_path, "remove", "b") == 0
    run(pwfile_path, "list")
    assert capsys.readouterr().out == "a: u1\nc: u3\n"

    assert run(pwfile_path, "get", "b") == 1
    assert "Error: password not found: b" in capsys.readouterr().err
    assert run(pwfile_path, "update", "b", "x") == 1
    assert run(pwfile_path, "remove", "b") == 1


def test_missing_file(pwfile_path, capsys, clipboard):
    for args in (["get", "x"], ["list"], ["add", "x", "y"], ["update", "x", "y"], ["remove", "x"]):
        assert run(pwfile_path, *args) == 1
        assert "Error: password file not found" in capsys.readouterr().err
    assert clipboard == []


def test_wrong_passphrase(pwfile_path, capsys, monkeypatch):
    run(pwfile_path, "init")
    monkeypatch.setenv("PW_PASSPHRASE", "something else")
    assert run(pwfile_path, "list") == 1
    assert "wrong passphrase" in capsys.readouterr().err


def test_generate(pwfile_path, clipboard):
    assert run(pwfile_path, "--password-length", "8", "--password-charset", "x", "generate") == 0
    assert clipboard == ["xxxxxxxx"]
    assert not os.path.exists(pwfile_path)


def test_generate_bad_arguments(pwfile_path, capsys, clipboard):
    assert run(pwfile_path, "--password-length", "0", "generate") == 1
    assert "Error: length must be positive" in capsys.readouterr().err
    assert run(pwfile_path, "--password-charset", "", "generate") == 1
    assert "Error: charset cannot be empty" in capsys.readouterr().err
    assert clipboard == []


def test_clipboard_failure(pwfile_path, capsys, monkeypatch):
    def broken(text):
        raise pyperclip.PyperclipException("no copy/paste mechanism")

    monkeypatch.setattr(pyperclip, "copy", broken)
    assert run(pwfile_path, "generate") == 1
    assert "Error: unable to access clipboard: no copy/paste mechanism" in capsys.readouterr().err

    with pytest.raises(ClipboardError) as excinfo:
        cli.copy_to_clipboard("secret")
    assert excinfo.value.kind is ErrorKind.IO_FAILURE
    assert isinstance(excinfo.value, PwError)


def test_undecodable_name_is_an_error_line(pwfile_path, capsys, clipboard):
    run(pwfile_path, "init")
    name = os.fsdecode(b"caf\xe9")
    assert run(pwfile_path, "add", name, "u") == 1
    assert "Error: name is not valid UTF-8" in capsys.readouterr().err
    assert run(pwfile_path, "add", "cafe", os.fsdecode(b"\xff")) == 1
    assert "Error: username is not valid UTF-8" in capsys.readouterr().err
    assert clipboard == []

    assert run(pwfile_path, "list") == 0
    assert capsys.readouterr().out == ""


def test_no_command_prints_usage(pwfile_path, capsys):
    assert cli.main([]) == 1
    err = capsys.readouterr().err
    assert "usage: pw" in err
    assert "generate  Generates a password without storing it" in err


def test_env_settings(monkeypatch, pwfile_path, clipboard):
    monkeypatch.setenv("PW_PASSWORD_LENGTH", "5")
    monkeypatch.setenv("PW_PASSWORD_CHARSET", "z")
    assert run(pwfile_path, "generate") == 0
    assert clipboard == ["zzzzz"]

    # Command line wins
    assert run(pwfile_path, "--password-length", "2", "generate") == 0
    assert clipboard[-1] == "zz"


def test_bad_env_settings(monkeypatch, capsys):
    monkeypatch.setenv("PW_BACKEND", "rot13")
    assert cli.main(["list"]) == 1
    assert "Error: PW_BACKEND must be one of" in capsys.readouterr().err


def test_settings_from_env():
    s = config.Settings.from_env({})
    assert s.file == config.DEFAULT_FILE
    assert s.password_length == 16
    assert s.backend == "scrypt"
    assert s.passphrase is None

    s = config.Settings.from_env({"PW_FILE": "/tmp/x", "PW_BACKEND": "builtin",
                                  "PW_PASSPHRASE": "pp", "PW_PASSWORD_LENGTH": "30"})
    assert (s.file, s.backend, s.passphrase, s.password_length) == ("/tmp/x", "builtin", "pp", 30)

    with pytest.raises(InvalidArgument):
        config.Settings.from_env({"PW_PASSWORD_LENGTH": "long"})


def test_prompt_passphrase(monkeypatch):
    answers = iter(["one", "two"])
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: next(answers))
    with pytest.raises(InvalidArgument):
        cli.prompt_passphrase(confirm=True)

    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "same")
    assert cli.prompt_passphrase(confirm=True) == "same"
    assert cli.prompt_passphrase(confirm=False) == "same"
