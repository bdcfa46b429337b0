"""The ``fetch-artifact`` and ``resolve-artifact`` commands.

``fetch-artifact`` populates one external fetch repository: it resolves and
downloads an artifact, checks its SHA-256 when one is given, links the POM and
payload under ``<workspace>/<prefix>/`` (an aar is unpacked there instead) and
writes the ``BUILD.bazel`` exposing them.
"""

import asyncio
import hashlib
import io
import os
import shutil
import time
import zipfile
from pathlib import Path
from typing import Optional

import safezipfile

from .aar import nested_aar_entry
from .bazel_file_generator import BUILD_FILE, aar_artifact_template, fetch_artifact_template, write_text_atomically
from .mapping import DOWNLOAD_PREFIX
from .output import Output
from .pom_models import FileSpec
from .resolver import FetchOutcome, ResolutionFailure


class FetchError(Exception):
    """A ``fetch-artifact`` failure; the message is printed as-is."""


def sha256_of(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


def link_or_copy(source: Path, destination: Path, output: Output) -> None:
    """Hard-link ``source`` to ``destination``, else symlink it, else copy it."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.exists() or destination.is_symlink():
        destination.unlink()
    try:
        os.link(source, destination)
        output.verbose(f"Hard link created from {source} to {destination}")
        return
    except OSError:
        pass
    try:
        os.symlink(Path(source).resolve(), destination)
        output.verbose(f"Symbolic link created from {source} to {destination}")
        return
    except OSError:
        pass
    shutil.copyfile(source, destination)
    output.verbose(f"File copied from {source} to {destination}")


def _checked_members(archive: zipfile.ZipFile, source, root: Path) -> list:
    members = []
    for info in archive.infolist():
        target = (root / info.filename).resolve()
        if target != root and root not in target.parents:
            raise FetchError(f"ERROR: Invalid ZIP entry {info.filename} in {source}")
        members.append(info)
    return members


def _extract_into(archive: zipfile.ZipFile, source, destination: Path) -> None:
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    # safezipfile enforces its entry-count and size limits in extractall().
    archive.extractall(path=root, members=_checked_members(archive, source, root))


def safe_unzip(archive_path: Path, destination: Path) -> None:
    """Extract an archive, refusing entries that would land outside ``destination``.

    Raises:
        FetchError: If an entry escapes the destination directory.
    """
    with safezipfile.ZipFile(archive_path) as archive:
        _extract_into(archive, archive_path, Path(destination))


def unpack_aar(archive_path: Path, destination: Path) -> None:
    """Unpack an aar into ``destination``.

    A bundle whose manifest only exists in a nested ``.aar`` is unpacked from
    that nested archive, so ``AndroidManifest.xml`` and ``libs/`` sit at the
    top of ``destination`` as the generated labels expect.

    Raises:
        FetchError: If an entry escapes the destination directory.
    """
    with safezipfile.ZipFile(archive_path) as archive:
        entry = nested_aar_entry(archive)
        if entry is None:
            _extract_into(archive, archive_path, Path(destination))
            return
        with safezipfile.ZipFile(io.BytesIO(archive.read(entry))) as nested:
            _extract_into(nested, f"{archive_path}!{entry}", Path(destination))


def _download_failure(spec: str, status, resolved, repositories: dict) -> str:
    urls = list(repositories.values())
    if status.outcome is FetchOutcome.INVALID_HASH:
        return (
            f"ERROR: Invalid maven hashes for {spec} from {urls}. "
            f"Check that {resolved.main.local_file} is the expected file."
        )
    if status.errors and len(status.errors) > 1:
        lines = [f"ERROR: Problem fetching main artifact for {spec}:"]
        for repo_id, error in status.errors.items():
            if error.outcome is FetchOutcome.NOT_FOUND:
                detail = "(404 - not found)"
            else:
                detail = f'({error.response_code}) "{error.message}"'
            lines.append(f"    - {detail} from {repositories.get(repo_id, repo_id)}/{resolved.main.path}")
        return "\n".join(lines)
    if status.outcome is FetchOutcome.FETCH_ERROR:
        return (
            f"ERROR: Problem fetching main artifact for {spec} from {status.repository}: "
            f"({status.response_code}) {status.message}"
        )
    return f"ERROR: Artifact {spec} not found at {urls[0]}/{resolved.main.path}"


async def fetch_artifact(
    spec: str,
    workspace: Path,
    resolver,
    output: Output,
    sha256: Optional[str] = None,
    prefix: str = DOWNLOAD_PREFIX,
) -> int:
    """Fetch one artifact into ``<workspace>/<prefix>`` and write its BUILD file.

    Args:
        spec: ``groupId:artifactId:version`` of the artifact.
        workspace: Root of the fetch repository.
        resolver: The ArtifactResolver to use.
        output: Where progress and errors are printed.
        sha256: Expected SHA-256 of the main payload, if known.
        prefix: Package under the workspace receiving the files.

    Returns:
        The exit status.
    """
    start = time.monotonic()
    try:
        status = await _fetch(spec, Path(workspace), resolver, output, sha256, prefix)
    except FetchError as e:
        output.out(str(e))
        return 1
    from_cache = " from cache" if status.outcome is FetchOutcome.FOUND_IN_CACHE else ""
    insecurely = "" if sha256 else " insecurely"
    output.info(f"Fetched {spec}{insecurely}{from_cache} in {round(time.monotonic() - start, 3)} seconds.")
    return 0


async def _fetch(spec, workspace: Path, resolver, output: Output, sha256, prefix):
    repositories = {r.id: r.url for r in resolver.repositories}
    try:
        coordinate = resolver.artifact_for(spec)
    except ValueError as e:
        raise FetchError(f"ERROR: {e}") from e
    result = await resolver.resolve(coordinate)
    if isinstance(result, ResolutionFailure):
        raise FetchError(f"ERROR: Could not resolve {spec}! Attempted from {list(repositories.values())}")
    resolved = result

    status = await resolver.download(resolved)
    if not status.successful:
        raise FetchError(_download_failure(spec, status, resolved, repositories))

    if sha256:
        actual = sha256_of(resolved.main.local_file)
        if actual != sha256.lower():
            raise FetchError(
                f"ERROR: {resolved.main.local_file} hash ({actual}) is not the expected hash ({sha256})"
            )

    package_dir = workspace / prefix
    build_file = package_dir / BUILD_FILE
    _link(resolved.pom, package_dir, output)
    if resolved.packaging.strip() == "aar":
        try:
            await asyncio.to_thread(unpack_aar, resolved.main.local_file, package_dir)
        except zipfile.BadZipFile as e:
            raise FetchError(f"ERROR: Could not unpack {resolved.main.local_file}: {e}") from e
        write_text_atomically(build_file, aar_artifact_template(prefix, ["classes.jar"]))
    else:
        _link(resolved.main, package_dir, output)
        write_text_atomically(build_file, fetch_artifact_template(prefix, [resolved.main.path]))
    return status


def _link(file: FileSpec, package_dir: Path, output: Output) -> None:
    link_or_copy(file.local_file, package_dir / file.path, output)


async def resolve_artifact(spec: str, resolver, output: Output) -> int:
    """Print ``groupId:artifactId:version|packaging`` for a coordinate."""
    start = time.monotonic()
    try:
        coordinate = resolver.artifact_for(spec)
    except ValueError as e:
        output.out(f"ERROR: {e}")
        return 1
    result = await resolver.resolve(coordinate)
    if isinstance(result, ResolutionFailure):
        output.out(f"ERROR: Could not resolve {spec}! {result.message}")
        return 1
    output.out(f"{result.group_id}:{result.artifact_id}:{result.version}|{result.packaging}")
    output.info(f"Resolved {spec} in {round(time.monotonic() - start, 3)} seconds.")
    return 0
