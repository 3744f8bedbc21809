from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from rich.console import Console

from avatargen.config import load_config, resolve_config
from avatargen.errors import AvatarGenError, InvalidRequestError
from avatargen.models import ALL_BACKENDS, THINKING_MODES
from avatargen.pipeline.resolver import AvatarResolver, build_resolver
from avatargen.utils.asyncio_utils import run_async
from avatargen.utils.io import write_json

console = Console()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="avatargen")
    parser.add_argument("--config", type=Path, help="YAML config file (defaults apply when omitted).")
    parser.add_argument("--root", type=Path, help="Directory holding the image collections.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Serve a cached robot or generate a new one.")
    resolve_parser.add_argument("concept")
    resolve_parser.add_argument("--backend", help=f"Backend tag or '{ALL_BACKENDS}'.")
    resolve_parser.add_argument("--thinking", choices=THINKING_MODES)
    resolve_parser.add_argument("--out", type=Path, help="Also write the JSON result to this file.")

    test_parser = subparsers.add_parser("test-backend", help="Check that a backend is reachable.")
    test_parser.add_argument("--backend", help=f"Backend tag or '{ALL_BACKENDS}'.")

    subparsers.add_parser("gallery", help="List generated robots, newest first.")
    subparsers.add_parser("library", help="List every artifact the matcher can see.")

    args = parser.parse_args(argv)
    resolver = _build(args.config, args.root)

    try:
        if args.command == "resolve":
            run_resolve(resolver, args.concept, args.backend, args.thinking, args.out)
        elif args.command == "test-backend":
            run_test_backend(resolver, args.backend)
        elif args.command == "gallery":
            console.print_json(data=resolver.list_generated())
        elif args.command == "library":
            run_library(resolver)
    except InvalidRequestError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(2)
    except AvatarGenError as exc:
        console.print(f"[red]Generation failed: {exc}[/red]")
        sys.exit(1)


def run_resolve(
    resolver: AvatarResolver,
    concept: str,
    backend: str | None,
    thinking: str | None,
    out: Path | None = None,
) -> dict[str, Any]:
    result = run_async(resolver.resolve(concept, backend, thinking))
    payload = result.to_dict()
    console.print_json(data=payload)
    if out is not None:
        write_json(out, payload)
    if not payload["success"]:
        sys.exit(1)
    return payload


def run_test_backend(resolver: AvatarResolver, backend: str | None) -> None:
    result = run_async(resolver.test_backend(backend))
    if isinstance(result, dict):
        payload = {tag: probe.to_dict() for tag, probe in result.items()}
        ok = all(probe.ok for probe in result.values())
    else:
        payload = result.to_dict()
        ok = result.ok
    console.print_json(data=payload)
    if not ok:
        sys.exit(1)


def run_library(resolver: AvatarResolver) -> None:
    artifacts = resolver.library.list()
    console.print_json(
        data=[
            {"name": artifact.name, "source": artifact.source, "filename": artifact.filename}
            for artifact in artifacts
        ]
    )


def _build(config_path: Path | None, root: Path | None) -> AvatarResolver:
    config = load_config(config_path).data if config_path else resolve_config()
    if root is not None:
        config["library"]["root"] = str(root)
    return build_resolver(config)


if __name__ == "__main__":
    main()
