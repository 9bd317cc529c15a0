"""Tests for the command line: option processing, recovery rules, exit codes."""

import io
from unittest.mock import MagicMock, patch

import pytest

from cmail.app import (
    RC_INVTO,
    RC_MISSMTP,
    RC_MISSPWD,
    RC_MISSUSR,
    RC_NOK,
    RC_OK,
    RC_USAGE,
    OFF_SMTP,
    CommandError,
    UsageError,
    main,
    parse_args,
    post_parse,
    split_by,
)
from cmail.config import Config, SMTPConfig
from cmail.smtp import SMTPClient, TransferCode, TransferResult, TransportOption

from conftest import FakeTransport


def prepare(argv, config=None):
    """Parse argv and run the post-processing on a fresh client."""
    args, _ = parse_args(argv)
    client = SMTPClient(transport=FakeTransport())
    post_parse(args, client, config or Config())
    return args, client


@pytest.fixture
def no_keyring():
    with patch("cmail.app.lookup_password", return_value=None) as lookup:
        yield lookup


class TestParseArgs:
    """Tests for argument parsing."""

    def test_positionals(self):
        args, no_input = parse_args(["bob@example.com", "smtp.example.com"])
        assert args.to == "bob@example.com"
        assert args.smtp == "smtp.example.com"
        assert no_input is False

    def test_repeatable_options(self):
        args, _ = parse_args(["-dd", "-H", "Cc: a@x.org", "-H", "Bcc: b@x.org", "bob@example.com"])
        assert args.debug == 2
        assert args.header == ["Cc: a@x.org", "Bcc: b@x.org"]

    def test_bare_dash_marker(self):
        args, no_input = parse_args(["-a", "file.txt", "bob@example.com", "-"])
        assert no_input is True
        assert args.to == "bob@example.com"
        assert args.smtp == ""

    @pytest.mark.parametrize(
        "argv",
        [
            ["-s", "-", "bob@example.com"],
            ["--subject", "-", "bob@example.com"],
            ["-ds", "-", "bob@example.com"],
        ],
    )
    def test_dash_as_option_value(self, argv):
        """A "-" consumed by an option is its value, not the no-input marker."""
        args, no_input = parse_args(argv)
        assert args.subject == "-"
        assert args.to == "bob@example.com"
        assert no_input is False

    def test_dash_after_option_value(self):
        args, no_input = parse_args(["-s", "Hi", "-", "-a", "file.txt", "bob@example.com"])
        assert no_input is True
        assert args.subject == "Hi"
        assert args.to == "bob@example.com"

    def test_unknown_option(self):
        with pytest.raises(UsageError):
            parse_args(["--bogus", "bob@example.com"])

    def test_split_by(self):
        assert split_by(",", " a@x.org , ,\tb@y.org ") == ["a@x.org", "b@y.org"]


class TestHeaders:
    """Tests for recipients and -H headers."""

    def test_invalid_to(self, no_keyring):
        with pytest.raises(CommandError) as excinfo:
            prepare(["bob", "smtp.example.com"])
        assert excinfo.value.code == RC_INVTO

    def test_invalid_entries_skipped(self, capsys):
        _, client = prepare(["bob, carol@example.com", "smtp.example.com"])
        assert client.to == "<carol@example.com>"
        assert "'bob'" in capsys.readouterr().err

    def test_additive_and_overridable(self, capsys):
        _, client = prepare([
            "-s", "from option",
            "-H", "cc: a@example.com, b@example.com",
            "-H", "Subject:  Hello ",
            "-H", "From: first@example.com",
            "-H", "FROM: me@example.com",
            "-H", "Date: now",
            "-H", "X-Mailer: cmail",
            "bob@example.com",
            "smtp.example.com",
        ])
        assert client.cc == "<a@example.com>, <b@example.com>"
        assert client.subject == "Hello"
        assert client.sender == "<me@example.com>"
        err = capsys.readouterr().err
        assert "Date: now" in err
        assert "X-Mailer: cmail" in err

    def test_subject_option(self):
        _, client = prepare(["-s", "Report", "bob@example.com", "smtp.example.com"])
        assert client.subject == "Report"


class TestRecovery:
    """Tests for recovering From, username, password and smtp server."""

    def test_everything_from_username(self):
        args, client = prepare(["-u", "me@example.com", "-p", " secret ", "bob@example.com"])
        assert client.sender == "<me@example.com>"
        assert args.smtp == "smtp.example.com"
        assert args.password == "secret"

    def test_from_username_and_smtp_domain(self):
        args, client = prepare(["-u", "me", "-p", "secret", "bob@example.com", "smtp.mail.example.com"])
        assert client.sender == "<me@mail.example.com>"
        assert args.smtp == "smtp.mail.example.com"

    def test_explicit_from_kept(self):
        _, client = prepare([
            "-u", "me@example.com", "-p", "secret",
            "-H", "From: alias@example.com",
            "bob@example.com",
        ])
        assert client.sender == "<alias@example.com>"

    def test_password_from_keyring(self):
        with patch("cmail.app.lookup_password", return_value="stored") as lookup:
            args, _ = prepare(["-u", "me@example.com", "bob@example.com"])
        lookup.assert_called_once_with("me@example.com")
        assert args.password == "stored"

    def test_missing_password(self, no_keyring):
        with pytest.raises(CommandError) as excinfo:
            prepare(["-u", "me@example.com", "bob@example.com"])
        assert excinfo.value.code == RC_MISSPWD

    def test_username_from_sender(self):
        args, _ = prepare(["-p", "secret", "-H", "From: me@example.org", "bob@example.com"])
        assert args.username == "me@example.org"
        assert args.smtp == "smtp.example.org"

    def test_missing_username(self):
        with pytest.raises(CommandError) as excinfo:
            prepare(["-p", "secret", "bob@example.com", "smtp.example.com"])
        assert excinfo.value.code == RC_MISSUSR

    def test_smtp_from_sender(self):
        args, _ = prepare(["-H", "From: me@example.org", "bob@example.com"])
        assert args.smtp == "smtp.example.org"

    def test_missing_smtp(self):
        with pytest.raises(CommandError) as excinfo:
            prepare(["bob@example.com"])
        assert excinfo.value.code == RC_MISSMTP

    def test_unrecoverable_smtp(self):
        with pytest.raises(CommandError) as excinfo:
            prepare(["-u", "me", "-p", "secret", "bob@example.com"])
        assert excinfo.value.code == RC_MISSMTP

    def test_config_defaults(self):
        config = Config(smtp=SMTPConfig(host="mail.example.com", port=587, sender="me@example.com"))
        args, client = prepare(["bob@example.com"], config)
        assert args.smtp == "mail.example.com:587"
        assert client.sender == "<me@example.com>"

    def test_options_override_config(self):
        config = Config(smtp=SMTPConfig(host="mail.example.com", sender="me@example.com"))
        args, client = prepare(
            ["-H", "From: other@example.com", "bob@example.com", "smtp.example.net"], config
        )
        assert args.smtp == "smtp.example.net"
        assert client.sender == "<other@example.com>"


class TestMain:
    """Tests for main() end to end, on a fake transport."""

    @pytest.fixture
    def config_path(self, temp_dir):
        return temp_dir / "config.toml"

    @pytest.fixture
    def transport(self):
        transport = FakeTransport()
        with patch("cmail.app.SMTPTransport", return_value=transport):
            yield transport

    @pytest.fixture
    def stdin(self, monkeypatch):
        def feed(data: bytes) -> None:
            monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(data)))
        return feed

    def test_send_ok(self, transport, stdin, config_path, capsys):
        stdin(b"Hello")
        rc = main(["-s", "Hi", "-H", "From: me@example.com", "bob@example.com",
                   "--config", str(config_path)])

        assert rc == RC_OK
        assert capsys.readouterr().out == "sending ok\n"
        options = transport.performed[0]
        assert options[TransportOption.URL] == "smtp://smtp.example.com"
        assert transport.payloads[0].endswith(b"\r\n\r\nHello\r\n")

    def test_credentials_imply_smtps(self, transport, stdin, config_path):
        stdin(b"Hello")
        rc = main(["-u", "me@example.com", "-p", "secret", "bob@example.com",
                   "--config", str(config_path)])

        assert rc == RC_OK
        options = transport.performed[0]
        assert options[TransportOption.URL] == "smtps://smtp.example.com"
        assert options[TransportOption.USERNAME] == "me@example.com"
        assert options[TransportOption.PASSWORD] == "secret"

    def test_attachment_only(self, transport, monkeypatch, attachment, config_path):
        """A bare "-" with attachments leaves stdin alone."""
        fake_stdin = MagicMock()
        monkeypatch.setattr("sys.stdin", fake_stdin)
        rc = main(["-a", str(attachment), "-H", "From: me@example.com",
                   "bob@example.com", "-", "--config", str(config_path)])

        assert rc == RC_OK
        fake_stdin.buffer.read.assert_not_called()
        document = transport.performed[0][TransportOption.MIME_POST]
        assert [part.path for part in document.parts] == [attachment]

    def test_delivery_failure(self, transport, stdin, config_path, capsys):
        transport.result = TransferResult(TransferCode.COULDNT_CONNECT, "connection refused")
        stdin(b"Hello")
        rc = main(["-H", "From: me@example.com", "bob@example.com", "--config", str(config_path)])

        assert rc == RC_NOK
        assert "sending error: couldnt connect: connection refused" in capsys.readouterr().err

    def test_session_error_offset(self, transport, stdin, config_path):
        config_path.write_text("[smtp]\nmax_recipients = 1\n")
        stdin(b"Hello")
        rc = main(["-H", "From: me@example.com", "a@example.com, b@example.com",
                   "--config", str(config_path)])
        assert rc == OFF_SMTP + 0

    def test_command_error(self, transport, stdin, config_path, capsys):
        stdin(b"Hello")
        rc = main(["bob@example.com", "--config", str(config_path)])
        assert rc == RC_MISSMTP
        assert "smtp server is required" in capsys.readouterr().err
        assert transport.performed == []

    def test_usage_error(self, capsys):
        assert main(["--bogus"]) == RC_USAGE
        assert "--bogus" in capsys.readouterr().err

    def test_invalid_config(self, config_path):
        config_path.write_text("[smtp\n")
        assert main(["bob@example.com", "--config", str(config_path)]) == RC_USAGE

    @pytest.mark.parametrize("content", ["[smtp]\nhost = 5\n", "[smtp]\nverify_certs = \"no\"\n"])
    def test_mistyped_config(self, transport, config_path, capsys, content):
        config_path.write_text(content)
        rc = main(["-H", "From: me@example.com", "bob@example.com", "--config", str(config_path)])
        assert rc == RC_USAGE
        assert "Invalid config file" in capsys.readouterr().err
        assert transport.performed == []

    def test_config_path_is_directory(self, temp_dir):
        assert main(["bob@example.com", "--config", str(temp_dir)]) == RC_USAGE

    def test_init_config(self, config_path, capsys):
        assert main(["--init-config", "--config", str(config_path)]) == RC_OK
        assert config_path.exists()
        assert str(config_path) in capsys.readouterr().out

    def test_paths(self, capsys):
        assert main(["--paths"]) == RC_OK
        assert "config.toml" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["--version"])
        assert excinfo.value.code == 0
        assert "cmail" in capsys.readouterr().out
