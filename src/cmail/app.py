# =============================================================================
# cmail Command Line
# =============================================================================
# Sends one email from the command line; the body is read from stdin.
#
#   echo "Hello" | cmail -s "Greetings" -u me@example.com -p secret bob@example.com
#
# The app:
#   - Parses options and -H headers into an SMTP session
#   - Recovers what was not given (From, username, smtp server) from what was
#   - Runs the send and maps errors onto process exit codes
#
# If there are attachments or the input is not ASCII, the mail is sent as
# MIME with base64 parts, otherwise as plain text.
# =============================================================================

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Sequence

from cmail import __app_name__, __version__
from cmail.config import Config, ConfigError, lookup_password, print_paths
from cmail.core import HeaderKind
from cmail.errors import SMTPError
from cmail.smtp import SMTPClient, SMTPTransport

logger = logging.getLogger(__name__)


# Exit codes
RC_OK = 0
RC_NOK = 1          # Delivery failed
RC_INVTO = 2        # No valid "To" address
RC_MISSUSR = 3      # Password given, username missing and not recoverable
RC_MISSPWD = 4      # Username given, password missing
RC_MISSMTP = 5      # SMTP server missing and not recoverable
RC_USAGE = 6        # Bad command line
OFF_SMTP = 7        # Offset added to SMTPError.code

SPACES = " \t"

# Bare argument suppressing stdin when attachments are given
NO_INPUT_MARKER = "-"

# Options consuming the following argument as their value
VALUE_OPTIONS = frozenset({
    "-a", "--attachment",
    "-H", "--header",
    "-p", "--password",
    "-s", "--subject",
    "-u", "--username",
    "--config",
})

EPILOG = """\
if there are attachments or inputs contain unicode, the mail is sent using
mime/base64 encoding, otherwise it is sent as plain text

to send attachments only and suppress inputs, specify a bare qualifier `-',
predicated at least one option -a is given

- Option -H supports headers: `From', `To', `Cc', `Bcc', `Subject'
  headers should be given one per option, e.g.: -H 'Subject: this is a subject'
- Headers `To', `Cc', `Bcc' are additive (multiple arguments could be given,
  listed over comma), while `From' and `Subject' are overridable (only the last
  given will be recorded)
- Argument `to' also may contain multiple recipients (like additive headers)
- Argument `smtp', if not given, is recovered from the username (option -u,
  or header 'From:'): the domain part of the address is prepended with "smtp."
- if header 'From: ...' is missed, it is recovered from the username
- a username (-u) requires a password (-p, or one stored in the keyring)
- a password (-p) requires a username; if not given, it is recovered from
  the 'From: ...' header
- specifying a username/password implies the `smtps://' protocol
  (instead of the default `smtp://')
- subject could be passed either via -s or via -H 'Subject: ...'; the latter
  overrides the former
"""


class UsageError(Exception):
    """Raised when the command line cannot be parsed."""
    pass


class CommandError(Exception):
    """Raised when the options are inconsistent; carries the exit code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser reporting errors as UsageError instead of exiting."""

    def error(self, message: str) -> None:
        raise UsageError(message)


# =============================================================================
# Argument Parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=__app_name__,
        description=(
            "An easy utility to send emails from the command line "
            "(body is read from stdin)"
        ),
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("to", nargs="?", default="", help="'to' recipient(s)")
    parser.add_argument(
        "smtp",
        nargs="?",
        default="",
        help="smtp server to connect to (default: recovered from username)",
    )
    parser.add_argument(
        "-a", "--attachment",
        action="append",
        default=[],
        type=Path,
        help="attach file",
    )
    parser.add_argument(
        "-d", "--debug",
        action="count",
        default=0,
        help="turn on debugs (multiple calls increase verbosity)",
    )
    parser.add_argument(
        "-H", "--header",
        action="append",
        default=[],
        help="append email header",
    )
    parser.add_argument("-p", "--password", help="password to use with username")
    parser.add_argument("-s", "--subject", help="set email subject")
    parser.add_argument("-u", "--username", help="username to access smtp server with")
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )
    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def parse_args(argv: Sequence[str]) -> tuple[argparse.Namespace, bool]:
    """
    Parse command-line arguments.

    Returns:
        The parsed namespace and whether the bare "-" marker was given.

    Raises:
        UsageError: If the arguments are invalid.
    """
    remaining: list[str] = []
    no_input = False
    takes_value = False
    for arg in argv:
        if arg == NO_INPUT_MARKER and not takes_value:
            no_input = True
            continue
        remaining.append(arg)
        takes_value = not takes_value and _expects_value(arg)

    args = build_parser().parse_args(remaining)
    return args, no_input


def _expects_value(arg: str) -> bool:
    """Whether arg is an option whose value is the next argument."""
    if arg.startswith("--"):
        return arg in VALUE_OPTIONS
    if arg.startswith("-") and len(arg) > 1:
        # Short options may be clustered (-ds); the value follows the last one
        # unless it is attached (-sSubject)
        for index, letter in enumerate(arg[1:], start=1):
            if f"-{letter}" in VALUE_OPTIONS:
                return index == len(arg) - 1
    return False


# =============================================================================
# Option Post-Processing
# =============================================================================

def trim_spaces(text: str) -> str:
    return text.strip(SPACES)


def split_by(delimiter: str, text: str) -> list[str]:
    """Split and trim; empty lexemes are dropped."""
    return [lexeme for lexeme in (trim_spaces(s) for s in text.split(delimiter)) if lexeme]


def bare_address(value: str) -> str:
    if value.startswith("<") and value.endswith(">"):
        return value[1:-1]
    return value


def append_email_header(client: SMTPClient, kind: HeaderKind, text: str) -> None:
    """Add each comma-separated address in text to an additive header."""
    for email in split_by(",", text):
        if "@" in email:
            logger.debug(f"{kind.value}: {email}")
            client.add_header(kind, email)
        else:
            print(f"fail: email '{email}' does not seem to be valid, ignoring", file=sys.stderr)


def parse_headers(args: argparse.Namespace, client: SMTPClient) -> None:
    """Apply all -H options."""
    for option in args.header:
        name, separator, value = option.partition(":")
        if not separator:
            value = option
        kind = HeaderKind.match(name)

        if kind in (HeaderKind.DATE, HeaderKind.NONE):
            print(f"fail: unrecognized header in '{option}', ignoring", file=sys.stderr)
            continue

        if kind in (HeaderKind.FROM, HeaderKind.SUBJECT):
            client.add_header(kind, trim_spaces(value))
            logger.debug(f"Appended '{kind.value}': {trim_spaces(value)}")
        else:
            append_email_header(client, kind, value)


def recover_from(args: argparse.Namespace, client: SMTPClient) -> None:
    """
    Recover the "From" header from the username.

    A username with "@" is used as is. Otherwise the domain is the part of
    the smtp server name after the last label containing "smtp", e.g.
    user + smtp.example.com -> user@example.com.
    """
    username = trim_spaces(args.username or "")
    if not username:
        return
    if "@" in username:
        client.set_sender(username)
        return

    labels = split_by(".", args.smtp)
    domain_labels: list[str] = []
    for label in reversed(labels):
        if "smtp" in label:
            break
        domain_labels.insert(0, label)
    if not domain_labels:
        return

    sender = f"{username}@{'.'.join(domain_labels)}"
    client.set_sender(sender)
    logger.info(f"Recovered 'From': {sender}")


def post_parse(args: argparse.Namespace, client: SMTPClient, config: Config) -> None:
    """
    Check option requirements and compatibility, set up headers on the client.

    Raises:
        CommandError: With the exit code of the first unmet requirement.
        RecipientAppendError: If a recipient cannot be added.
    """
    logger.info("Begin processing options")

    append_email_header(client, HeaderKind.TO, args.to)
    if not client.to:
        raise CommandError(RC_INVTO, "header 'To' must be a valid email")

    if args.subject is not None:
        client.set_subject(args.subject)

    if not args.username:
        args.username = config.smtp.username
    if not args.smtp:
        args.smtp = config.smtp.server

    parse_headers(args, client)
    if not client.sender and config.smtp.sender:
        client.set_sender(config.smtp.sender)
    if not client.sender:
        recover_from(args, client)

    if args.username and not args.password:
        args.password = lookup_password(args.username)
        if not args.password:
            raise CommandError(RC_MISSPWD, "password is required but not provided")

    if args.password:
        args.password = trim_spaces(args.password)
        if not args.username:
            if not client.sender:
                raise CommandError(RC_MISSUSR, "username is required but not provided")
            args.username = bare_address(client.sender)

    if not args.smtp:
        if args.username and "@" in args.username:
            args.smtp = "smtp." + args.username.partition("@")[2]
            logger.info(f"Recovered smtp from '-u' option: {args.smtp}")
            return
        sender = bare_address(client.sender)
        if "@" in sender:
            args.smtp = "smtp." + sender.partition("@")[2]
            logger.info(f"Recovered smtp from 'From:' header: {args.smtp}")
            return
        raise CommandError(RC_MISSMTP, "smtp server is required but not provided")


# =============================================================================
# CLI Entry Point
# =============================================================================

def configure_logging(verbosity: int) -> None:
    """Map the -d count onto a logging level (0: warnings, 1: info, 2+: debug)."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for cmail.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (--paths, --init-config, --version)
        3. Loads configuration and sets up the SMTP session
        4. Reads the body from stdin and sends the mail

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    argv = sys.argv[1:] if argv is None else list(argv)
    try:
        args, no_input = parse_args(argv)
    except UsageError as e:
        build_parser().print_usage(sys.stderr)
        print(f"{__app_name__}: error: {e}", file=sys.stderr)
        return RC_USAGE

    configure_logging(args.debug)

    if args.paths:
        print_paths()
        return RC_OK

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return RC_USAGE

    if args.init_config:
        path = config.save(args.config)
        print(f"Config written to {path}")
        return RC_OK

    client = SMTPClient(
        transport=SMTPTransport(timeout=config.smtp.timeout, pull_size=config.smtp.pull_size),
        max_recipients=config.smtp.max_recipients or None,
        verify_certs=config.smtp.verify_certs,
    )

    try:
        post_parse(args, client, config)

        if args.username:
            client.ssl(args.username, args.password)
        client.host = args.smtp
        for path in args.attachment:
            client.attach_file(path)

        skip_input = no_input and bool(args.attachment)
        body = b"" if skip_input else sys.stdin.buffer.read()
        result = asyncio.run(client.send(body))

    except CommandError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.code
    except SMTPError as e:
        logger.info(f"Exception raised by: {type(e).__name__}")
        print(f"{__app_name__} SMTP exception: {e}", file=sys.stderr)
        return OFF_SMTP + e.code

    if not result.ok:
        print(f"sending error: {result}", file=sys.stderr)
        return RC_NOK

    print("sending ok")
    return RC_OK


if __name__ == "__main__":
    sys.exit(main())
