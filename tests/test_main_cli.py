from __future__ import annotations

from pathlib import Path

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_create_user_subcommand() -> None:
    args = _parse_args(["create-user", "alice", "a@x.com"])
    assert args.command == "create-user"
    assert (args.username, args.email) == ("alice", "a@x.com")


def test_missing_mongo_uri_exits_with_error(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("MONGO_URI", raising=False)

    assert main(["--config", str(tmp_path / "missing.yaml"), "init-db"]) == 1


def test_history_prints_oldest_first(database, capsys) -> None:
    from datetime import datetime, timedelta, timezone

    from main import _print_history

    start = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    database.messages.append("alice", "first", start)
    database.messages.append("bob", "second", start + timedelta(minutes=1))

    _print_history(database, 10)

    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].endswith("alice: first")
    assert lines[1].endswith("bob: second")


def test_create_user_prompts_for_password(database, monkeypatch, capsys) -> None:
    import main as cli

    monkeypatch.setattr(cli, "getpass", lambda prompt="": "pw12345")

    assert cli._create_user(database, "alice", "a@x.com") == 0
    assert database.accounts.authenticate("a@x.com", "pw12345") is not None
    assert cli._create_user(database, "alice", "b@x.com") == 1
    assert "Username already taken." in capsys.readouterr().err


def test_global_config_option_before_serve_options() -> None:
    args = _parse_args(["--config", "x.yaml", "--port", "1"])
    assert args.command == "serve"
    assert args.config == "x.yaml"
    assert args.port == 1

    inline = _parse_args(["--config=x.yaml", "--host", "127.0.0.1"])
    assert (inline.command, inline.config, inline.host) == ("serve", "x.yaml", "127.0.0.1")


def test_global_config_option_alone_or_with_subcommand() -> None:
    alone = _parse_args(["--config", "x.yaml"])
    assert (alone.command, alone.config, alone.host, alone.port) == ("serve", "x.yaml", None, None)

    history = _parse_args(["--config", "x.yaml", "history", "--limit", "5"])
    assert (history.command, history.limit) == ("history", 5)


def test_cli_module_has_no_interpreter_bootstrap() -> None:
    import main as cli

    assert not hasattr(cli, "_bootstrap_virtualenv")
    assert "serve" in cli.KNOWN_COMMANDS
