"""CLI entrypoints for hashseal commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import ConfigError, HashSealConfig, load_config
from .logging import configure_logging
from .models import Repository, RunReport
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_root_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Directory whose subdirectories are repositories (defaults to the configured root).",
    )


def _add_key_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--key",
        dest="key_id",
        default=None,
        help="GnuPG key id, fingerprint or user id (defaults to gpg's default key).",
    )


def _add_repo_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("repo", help="Path to a single repository.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hashseal",
        description="Generate, sign, publish and verify hash manifests for git repositories.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to .hashseal.yml (defaults to the one in the root directory).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write detailed diagnostics to this file.",
    )
    parser.add_argument(
        "--hash-backend",
        choices=("tool", "library"),
        default=None,
        help="Hash with the external checksum tool or in-process.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="List repositories below the root.")
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_root_argument(scan_parser)

    publish_parser = subparsers.add_parser(
        "publish",
        help="Generate, sign, commit and push manifests for every repository.",
    )
    _add_verbose_option(publish_parser, suppress_default=True)
    _add_root_argument(publish_parser)
    _add_key_option(publish_parser)
    publish_parser.add_argument(
        "--no-push",
        action="store_true",
        help="Commit the manifest but do not push.",
    )
    publish_parser.add_argument(
        "--json", action="store_true", help="Print a JSON report instead of the log."
    )

    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify signatures and file hashes for every repository.",
    )
    _add_verbose_option(verify_parser, suppress_default=True)
    _add_root_argument(verify_parser)
    _add_key_option(verify_parser)
    verify_parser.add_argument(
        "--pin-key",
        action="store_true",
        help="Only accept signatures made by --key (or signing.key_id).",
    )
    verify_parser.add_argument(
        "--json", action="store_true", help="Print a JSON report instead of the log."
    )

    generate_parser = subparsers.add_parser(
        "generate", help="Write the manifest for a single repository."
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_repo_argument(generate_parser)

    sign_parser = subparsers.add_parser("sign", help="Sign the manifest of a single repository.")
    _add_verbose_option(sign_parser, suppress_default=True)
    _add_repo_argument(sign_parser)
    _add_key_option(sign_parser)

    check_parser = subparsers.add_parser(
        "check", help="Check file hashes of a single repository against its manifest."
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_repo_argument(check_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_root_argument(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def _resolve_config(args: argparse.Namespace) -> HashSealConfig:
    root = getattr(args, "root", None)
    source = Path(args.config) if args.config else Path(root or ".")
    config = load_config(source)
    if root:
        config.root = Path(root).expanduser().resolve()
    if args.hash_backend:
        config.hashing.backend = args.hash_backend
    key_id = getattr(args, "key_id", None)
    if key_id:
        config.signing.key_id = key_id
    if getattr(args, "pin_key", False):
        config.signing.pin_key_on_verify = True
    if getattr(args, "no_push", False):
        config.git.push = False
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for hashseal commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        parser.exit(2, f"hashseal: {exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(config, host=args.host, port=args.port)
        return

    orchestrator = Orchestrator(config)

    if args.command == "scan":
        scan = orchestrator.discover()
        _print_log(orchestrator)
        parser.exit(0 if scan.error is None else 1)
    elif args.command in ("publish", "verify"):
        if args.command == "publish":
            report = orchestrator.publish_all()
        else:
            report = orchestrator.verify_all()
        _print_report(orchestrator, report, as_json=bool(args.json))
        parser.exit(0 if report.ok else 1)
    elif args.command in ("generate", "sign", "check"):
        repo_path = Path(args.repo).expanduser().resolve()
        if not orchestrator.scanner.is_repository(repo_path):
            parser.exit(1, f"{repo_path} is not a repository (no {config.marker} found)\n")
        repository = Repository(path=repo_path)
        if args.command == "generate":
            result = orchestrator.generate(repository)
        elif args.command == "sign":
            result = orchestrator.sign(repository)
        else:
            result = orchestrator.verify_integrity(repository)
        _print_log(orchestrator)
        parser.exit(0 if result.ok else 1)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _print_log(orchestrator: Orchestrator) -> None:
    sys.stdout.write(orchestrator.log.text())


def _print_report(orchestrator: Orchestrator, report: RunReport, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        _print_log(orchestrator)


if __name__ == "__main__":
    main(sys.argv[1:])
