"""CLI entry point.

Parses the global options shared by every command (tool config, settings,
verbosity and the local Maven cache), builds the resolver and dispatches to
one of ``gen-maven-repo``, ``fetch-artifact`` or ``resolve-artifact``.
"""

import argparse
import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

from .config import effective_repositories, load_repository_specification, load_settings, load_tool_config
from .fetch import fetch_artifact, resolve_artifact
from .mapping import DOWNLOAD_PREFIX
from .output import Output
from .pipeline import UnknownPackagingStrategy, generate_repository
from .resolver import ArtifactResolver

SETTINGS_ENV_VAR = "BAZEL_MAVEN_SETTINGS"
DEFAULT_SETTINGS_FILE = Path.home() / ".m2" / "settings.json"
DEFAULT_LOCAL_CACHE = Path.home() / ".m2" / "repository"
DEFAULT_WORKSPACE = Path(tempfile.gettempdir()) / "bazel" / "maven"


def _settings_path(explicit: Optional[Path]) -> Optional[Path]:
    """The settings file to load: explicit or from the environment, else the default if it exists."""
    if explicit is not None:
        return explicit
    return DEFAULT_SETTINGS_FILE if DEFAULT_SETTINGS_FILE.exists() else None


async def _gen_maven_repo(args, config, repositories, output: Output) -> int:
    workspace_name = args.workspace_name or config.workspace_name or args.workspace.name
    specification, errors = load_repository_specification(args.specification, output, workspace_name)
    if errors:
        for error in errors:
            output.out(f"ERROR: Invalid config: {error.message}")
        return 1
    async with ArtifactResolver(args.local_maven_cache, repositories) as resolver:
        return await generate_repository(
            specification,
            args.workspace,
            resolver,
            output,
            threads=args.threads,
            unknown_packaging=UnknownPackagingStrategy[args.unknown_packaging],
        )


async def _fetch_artifact(args, config, repositories, output: Output) -> int:
    async with ArtifactResolver(args.local_maven_cache, repositories) as resolver:
        return await fetch_artifact(
            args.artifact, args.workspace, resolver, output, sha256=args.sha256, prefix=args.prefix
        )


async def _resolve_artifact(args, config, repositories, output: Output) -> int:
    async with ArtifactResolver(args.local_maven_cache, repositories) as resolver:
        return await resolve_artifact(args.artifact, resolver, output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="maven-to-bazel",
        description="Generate Bazel BUILD files for a list of Maven artifacts",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Tool config (workspace name and Maven repositories)",
    )
    env_settings = os.environ.get(SETTINGS_ENV_VAR)
    parser.add_argument(
        "--settings", type=Path, default=Path(env_settings) if env_settings else None,
        help=f"Environment-specific overrides such as mirrors (env: {SETTINGS_ENV_VAR}, "
             f"default: {DEFAULT_SETTINGS_FILE} if present)",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Verbosity (can be specified multiple times)",
    )
    parser.add_argument(
        "--local_maven_cache", type=Path, default=DEFAULT_LOCAL_CACHE,
        help="Directory in which Maven artifacts are cached; created if it does not exist",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    gen = commands.add_parser("gen-maven-repo", help="Generate BUILD files for a repository specification")
    gen.add_argument("--workspace", type=Path, default=DEFAULT_WORKSPACE, help="Path to the workspace to be generated")
    gen.add_argument(
        "--workspace-name", default=None,
        help="Name of the workspace (default: the tool config's name, else the workspace directory name)",
    )
    gen.add_argument("--specification", type=Path, required=True, help="Repository specification JSON file")
    gen.add_argument("--threads", type=int, default=1, help="Worker tasks per pipeline stage")
    gen.add_argument(
        "--unknown-packaging", choices=[s.name for s in UnknownPackagingStrategy],
        default=UnknownPackagingStrategy.WARN.name,
        help="How to treat artifacts whose packaging is not jar, bundle or aar",
    )
    gen.set_defaults(handler=_gen_maven_repo)

    fetch = commands.add_parser("fetch-artifact", help="Download one artifact into a fetch repository")
    fetch.add_argument("--workspace", type=Path, required=True, help="Path to the fetch repository")
    fetch.add_argument("--sha256", default=None, help="Expected SHA-256 of the main artifact")
    fetch.add_argument(
        "--prefix", default=DOWNLOAD_PREFIX,
        help="Folder under the workspace into which the artifact is downloaded",
    )
    fetch.add_argument("artifact", help="groupId:artifactId:version")
    fetch.set_defaults(handler=_fetch_artifact)

    resolve = commands.add_parser("resolve-artifact", help="Print an artifact's resolved packaging")
    resolve.add_argument("artifact", help="groupId:artifactId:version")
    resolve.set_defaults(handler=_resolve_artifact)
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv=None) -> int:
    """CLI entry point. Parses arguments, loads configuration and runs the command.

    Returns:
        The process exit status.
    """
    args = parse_args(argv)
    output = Output(verbosity=args.verbose)
    try:
        settings = load_settings(_settings_path(args.settings), output)
        config = load_tool_config(args.config, output)
    except (OSError, ValueError, KeyError, TypeError) as e:
        output.out(f"ERROR: Invalid config: {e}")
        return 1
    repositories = effective_repositories(config, settings)
    return asyncio.run(args.handler(args, config, repositories, output))


if __name__ == "__main__":
    sys.exit(main())
