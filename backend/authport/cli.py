import argparse
import logging
import sys
from typing import List, Optional

from authport.core.crypto import EmptyPassphraseError
from authport.core.errors import AuthportError, InsecurePermissionsError, OutputExistsError
from authport.core.exporter import export_profiles
from authport.core.importer import import_profiles
from authport.core.messages import LANGUAGES, Messages
from authport.core.passphrase import PassphraseMismatchError, prompt_passphrase, resolve_passphrase
from authport.core.report import render
from authport.core.settings import Settings
from authport.core.workspace import Workspace

logger = logging.getLogger("authport")


def _add_common_args(parser: argparse.ArgumentParser, force_help: str):
    parser.add_argument("--passphrase-env", metavar="VAR", help="Environment variable containing the passphrase")
    parser.add_argument("--passphrase-prompt", action="store_true", help="Prompt for the passphrase")
    parser.add_argument("--yes", action="store_true", help="Confirm the operation")
    parser.add_argument("--force", action="store_true", help=force_help)
    parser.add_argument(
        "--lang",
        type=str.lower,
        choices=LANGUAGES,
        help="Message language (default: from LANG, else en)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authport", description="Encrypted backup and restore of auth profiles")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeatable)")
    parser.add_argument("--config-dir", help="Directory holding profiles.json / tokens.json")
    sub = parser.add_subparsers(dest="command", required=True)

    exp = sub.add_parser(
        "export",
        help="Export profiles to an encrypted file",
        epilog=(
            "An existing output file is never replaced silently: it must already be 0600 "
            "and --force must be given. "
            "example: AUTHPORT_PASSPHRASE=... authport export --all --out backup.enc --yes"
        ),
    )
    target = exp.add_mutually_exclusive_group()
    target.add_argument("--profile", help="Profile to export (default: 'default')")
    target.add_argument("--all", action="store_true", help="Export every profile that has a token")
    exp.add_argument("--out", required=True, help="Output file")
    _add_common_args(exp, force_help="Replace an existing 0600 output file (refused without this flag)")
    exp.set_defaults(func=cmd_export)

    imp = sub.add_parser(
        "import",
        help="Import profiles from an encrypted file",
        epilog="example: authport import --in backup.enc --passphrase-env PASSPHRASE --dry-run --json",
    )
    source = imp.add_mutually_exclusive_group()
    source.add_argument("--profile", help="Import only this profile from the file")
    source.add_argument("--all", action="store_true", help="Import every profile in the file (default)")
    imp.add_argument("--in", dest="input", required=True, help="Input file")
    _add_common_args(imp, force_help="Overwrite conflicting profiles (requires --yes)")
    imp.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    imp.add_argument("--json", action="store_true", help="Print the result as JSON")
    imp.set_defaults(func=cmd_import)
    return parser


def _passphrase(args: argparse.Namespace, settings: Settings, messages: Messages, confirm: bool) -> str:
    if args.passphrase_prompt and not args.passphrase_env:
        return prompt_passphrase(confirm=confirm, messages=messages)
    return resolve_passphrase(
        explicit_env=args.passphrase_env,
        allow_prompt=args.passphrase_prompt or sys.stdin.isatty(),
        confirm=confirm,
        default_env=settings.passphrase_env,
        messages=messages,
    )


def cmd_export(args: argparse.Namespace, workspace: Workspace, messages: Messages) -> int:
    if not args.yes:
        print(messages.get("warn.export_sensitive"), file=sys.stderr)
        print(messages.get("error.confirmation_required"), file=sys.stderr)
        return 1
    passphrase = _passphrase(args, workspace.settings, messages, confirm=True)
    result = export_profiles(
        workspace.open_directory(),
        workspace.open_store(),
        args.out,
        passphrase,
        profile_name=args.profile,
        export_all=args.all,
        confirm=args.yes,
        force=args.force,
        kdf_params=workspace.settings.kdf_params(),
    )
    for warning in result.warnings:
        print(messages.format("warn.skipped", warning=warning), file=sys.stderr)
    print(messages.format("info.export_count", count=len(result.exported), path=result.path))
    print(messages.get("success.export"))
    return 0


def cmd_import(args: argparse.Namespace, workspace: Workspace, messages: Messages) -> int:
    if args.force and not args.yes:
        logger.warning("--force has no effect without --yes; conflicting profiles will be skipped")
    passphrase = _passphrase(args, workspace.settings, messages, confirm=False)
    result = import_profiles(
        workspace.open_directory(),
        workspace.open_store(),
        args.input,
        passphrase,
        profile_name=args.profile,
        force=args.force,
        confirm=args.yes,
        dry_run=args.dry_run,
    )
    print(render(result, as_json=args.json, messages=messages))
    return 1 if result.summary.failed else 0


def describe_error(exc: AuthportError, messages: Messages) -> str:
    """Catalog text for the errors a user fixes by hand; the engine message otherwise."""
    if isinstance(exc, PassphraseMismatchError):
        return messages.get("error.passphrase_mismatch")
    if isinstance(exc, EmptyPassphraseError):
        return messages.get("error.empty_passphrase")
    if isinstance(exc, OutputExistsError):
        return messages.format("error.output_exists", path=exc.path)
    if isinstance(exc, InsecurePermissionsError):
        return f"{messages.get('error.bad_permissions')} ({exc})"
    return str(exc)


def _configure_logging(verbose: int, settings: Settings):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    # argparse handles -h/--help here, before any passphrase or file work
    args = build_parser().parse_args(argv)
    messages = Messages.for_code(args.lang)
    try:
        settings = Settings.from_env(config_dir=args.config_dir)
        _configure_logging(args.verbose, settings)
        return args.func(args, Workspace(settings), messages)
    except AuthportError as e:
        command = messages.get(f"command.{args.command}")
        error = describe_error(e, messages)
        print(messages.format("error.command_failed", command=command, error=error), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
