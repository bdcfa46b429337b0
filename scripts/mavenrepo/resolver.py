"""Maven repository resolver.

Fetches POMs and payloads from Maven HTTP repositories through a local cache
laid out like ``~/.m2/repository``, and builds just enough of an effective
POM model (parent inheritance, properties, dependency management and BOM
imports) to report an artifact's packaging and direct dependencies.

Failures are returned as values (``ResolutionFailure`` / ``FetchStatus``),
never raised to callers. No retries are performed here.
"""

import asyncio
import enum
import hashlib
import os
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Union

import httpx

from .config import DEFAULT_REPOSITORIES
from .pom_models import (
    ArtifactCoordinate,
    Dependency,
    FileSpec,
    MavenModule,
    ResolvedArtifact,
    parse_coordinate,
)
from .pom_parser import is_bom_import, parse_pom_bytes, resolve_property

# Scopes whose dependencies propagate to runtime consumers.
ACCEPTED_SCOPES = frozenset({"compile", "runtime"})

# Packaging -> main payload extension, where they differ.
PACKAGING_EXTENSIONS = {
    "bundle": "jar",
    "maven-plugin": "jar",
    "eclipse-plugin": "jar",
}

_MAX_PARENT_DEPTH = 20


class FetchOutcome(enum.Enum):
    FOUND_IN_CACHE = "found in cache"
    DOWNLOADED = "downloaded"
    NOT_FOUND = "not found"
    FETCH_ERROR = "fetch error"
    INVALID_HASH = "invalid hash"


@dataclass
class FetchStatus:
    """Outcome of fetching one file.

    Attributes:
        outcome: What happened.
        local_file: Cache location of the file when the fetch succeeded.
        repository: Id of the repository that answered, where known.
        response_code: HTTP status for fetch errors.
        message: Human-readable detail.
        errors: Per-repository statuses when every repository failed.
    """
    outcome: FetchOutcome
    local_file: Optional[Path] = None
    repository: Optional[str] = None
    response_code: Optional[int] = None
    message: str = ""
    errors: dict = field(default_factory=dict)

    @property
    def successful(self) -> bool:
        return self.outcome in (FetchOutcome.FOUND_IN_CACHE, FetchOutcome.DOWNLOADED)


class FailureReason(enum.Enum):
    NOT_FOUND = "not found"
    FETCH_ERROR = "fetch error"
    INVALID_HASH = "invalid hash"
    INVALID_POM = "invalid pom"


_REASONS = {
    FetchOutcome.NOT_FOUND: FailureReason.NOT_FOUND,
    FetchOutcome.FETCH_ERROR: FailureReason.FETCH_ERROR,
    FetchOutcome.INVALID_HASH: FailureReason.INVALID_HASH,
}


@dataclass(frozen=True)
class ResolutionFailure:
    """Why an artifact could not be resolved.

    Attributes:
        coordinate: The coordinate that failed (may be a parent or BOM of the requested one).
        reason: Failure category.
        message: Human-readable detail.
        repository: Id of the repository that produced the error, where known.
        status_code: HTTP status, where applicable.
        repositories: URLs of every repository that was tried.
    """
    coordinate: str
    reason: FailureReason
    message: str
    repository: Optional[str] = None
    status_code: Optional[int] = None
    repositories: tuple = ()


class _ModelError(Exception):
    """Internal: aborts building an effective model."""

    def __init__(self, failure: ResolutionFailure):
        super().__init__(failure.message)
        self.failure = failure


def artifact_path(coordinate: ArtifactCoordinate, extension: str, classifier: Optional[str] = None) -> str:
    """Repository layout path of one of an artifact's files.

    Example:
        ``javax.inject:javax.inject:1`` with ``jar`` -> ``javax/inject/javax.inject/1/javax.inject-1.jar``
    """
    suffix = f"-{classifier}" if classifier else ""
    return (
        f"{coordinate.group_id.replace('.', '/')}/{coordinate.artifact_id}/{coordinate.version}/"
        f"{coordinate.artifact_id}-{coordinate.version}{suffix}.{extension}"
    )


def filter_build_deps(dependencies: list) -> list:
    """Drop dependencies not propagated to runtime consumers (test, provided, system, import)."""
    return [d for d in dependencies if not d.scope or d.scope in ACCEPTED_SCOPES]


def _write_atomically(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class ArtifactResolver:
    """Resolves coordinates against Maven repositories, caching everything it fetches.

    Use as an async context manager so the HTTP client is closed::

        async with ArtifactResolver(cache_dir) as resolver:
            result = await resolver.resolve(resolver.artifact_for("javax.inject:javax.inject:1"))

    Args:
        cache_dir: Local repository directory; created on demand.
        repositories: Repositories tried in order. Defaults to Maven Central and Google.
        client: Optional pre-built ``httpx.AsyncClient`` (owned by the caller).
        timeout: HTTP timeout in seconds for the client built here.
    """

    def __init__(
        self,
        cache_dir: Path,
        repositories: Optional[list] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.cache_dir = Path(cache_dir)
        self.repositories = list(repositories or DEFAULT_REPOSITORIES)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._models = {}

    async def __aenter__(self) -> "ArtifactResolver":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def repository_urls(self) -> tuple:
        return tuple(r.url for r in self.repositories)

    def artifact_for(self, spec: str) -> ArtifactCoordinate:
        return parse_coordinate(spec)

    async def resolve(self, coordinate: ArtifactCoordinate) -> Union[ResolvedArtifact, ResolutionFailure]:
        """Resolve a coordinate's POM into a ResolvedArtifact.

        Returns:
            The resolved artifact, or a ResolutionFailure describing why the
            POM (or one of its parents or imported BOMs) could not be obtained.
        """
        try:
            model = await self._effective_model(coordinate, 0)
        except _ModelError as e:
            return e.failure
        extension = PACKAGING_EXTENSIONS.get(model.packaging, model.packaging)
        pom = self._file_spec(artifact_path(coordinate, "pom"))
        main = self._file_spec(artifact_path(coordinate, extension))
        sources = None
        if extension in ("jar", "aar"):
            sources = self._file_spec(artifact_path(coordinate, "jar", "sources"))
        return ResolvedArtifact(
            coordinate=coordinate,
            packaging=model.packaging,
            dependencies=tuple(self._resolved_dependencies(model)),
            pom=pom,
            main=main,
            sources=sources,
        )

    async def download(self, resolved: ResolvedArtifact) -> FetchStatus:
        """Fetch the main payload of a resolved artifact into the cache."""
        return await self.fetch(resolved.main.path, snapshot=resolved.version.endswith("-SNAPSHOT"))

    async def fetch(self, path: str, snapshot: bool = False) -> FetchStatus:
        """Fetch a repository-relative file, trying each repository in order.

        A cached copy short-circuits the network. Downloaded content is checked
        against the repository's ``.sha1`` file when one is published.
        """
        local = self.cache_dir / path
        if local.exists():
            return FetchStatus(FetchOutcome.FOUND_IN_CACHE, local_file=local)
        errors = {}
        for repo in self.repositories:
            if (snapshot and not repo.snapshots) or (not snapshot and not repo.releases):
                continue
            url = f"{repo.url.rstrip('/')}/{path}"
            try:
                response = await self._client.get(url)
            except httpx.HTTPError as e:
                errors[repo.id] = FetchStatus(
                    FetchOutcome.FETCH_ERROR, repository=repo.id, message=f"{type(e).__name__}: {e}"
                )
                continue
            if response.status_code == 404:
                errors[repo.id] = FetchStatus(
                    FetchOutcome.NOT_FOUND, repository=repo.id, response_code=404, message=f"{url} not found"
                )
                continue
            if response.status_code != 200:
                errors[repo.id] = FetchStatus(
                    FetchOutcome.FETCH_ERROR,
                    repository=repo.id,
                    response_code=response.status_code,
                    message=response.reason_phrase,
                )
                continue
            content = response.content
            expected = await self._published_sha1(url)
            if expected is not None and expected != hashlib.sha1(content).hexdigest():
                return FetchStatus(
                    FetchOutcome.INVALID_HASH,
                    repository=repo.id,
                    message=f"sha1 of {url} does not match the published checksum {expected}",
                )
            await asyncio.to_thread(_write_atomically, local, content)
            return FetchStatus(FetchOutcome.DOWNLOADED, local_file=local, repository=repo.id)
        return self._combined_failure(path, errors)

    async def _published_sha1(self, url: str) -> Optional[str]:
        try:
            response = await self._client.get(f"{url}.sha1")
        except httpx.HTTPError:
            return None
        if response.status_code != 200:
            return None
        text = response.text.strip()
        # Some repositories append the file name after the digest.
        return text.split()[0].lower() if text else None

    def _combined_failure(self, path: str, errors: dict) -> FetchStatus:
        failures = [s for s in errors.values() if s.outcome is FetchOutcome.FETCH_ERROR]
        if failures:
            return replace(failures[0], errors=errors)
        return FetchStatus(
            FetchOutcome.NOT_FOUND,
            message=f"{path} not found in {', '.join(self.repository_urls)}",
            errors=errors,
        )

    def _file_spec(self, path: str) -> FileSpec:
        return FileSpec(path=path, local_file=self.cache_dir / path)

    async def _load_pom(self, coordinate: ArtifactCoordinate) -> MavenModule:
        status = await self.fetch(
            artifact_path(coordinate, "pom"), snapshot=coordinate.version.endswith("-SNAPSHOT")
        )
        if not status.successful:
            raise _ModelError(
                ResolutionFailure(
                    coordinate=coordinate.coordinate,
                    reason=_REASONS[status.outcome],
                    message=status.message,
                    repository=status.repository,
                    status_code=status.response_code,
                    repositories=self.repository_urls,
                )
            )
        try:
            content = await asyncio.to_thread(status.local_file.read_bytes)
            return parse_pom_bytes(content)
        except ET.ParseError as e:
            raise _ModelError(
                ResolutionFailure(
                    coordinate=coordinate.coordinate,
                    reason=FailureReason.INVALID_POM,
                    message=f"Malformed pom {status.local_file}: {e}",
                    repository=status.repository,
                    repositories=self.repository_urls,
                )
            ) from e

    async def _effective_model(self, coordinate: ArtifactCoordinate, depth: int) -> MavenModule:
        """Merge a POM with its parent chain and imported BOMs.

        Child values win over inherited ones. The returned module's properties
        include the ``project.*`` keys, and its dependency management is keyed
        on ``groupId:artifactId`` with the nearest declaration winning.
        """
        key = coordinate.coordinate
        if key in self._models:
            return self._models[key]
        if depth > _MAX_PARENT_DEPTH:
            raise _ModelError(
                ResolutionFailure(
                    coordinate=key,
                    reason=FailureReason.INVALID_POM,
                    message=f"Parent chain of {key} is too deep (cycle?)",
                    repositories=self.repository_urls,
                )
            )
        pom = await self._load_pom(coordinate)

        properties = {}
        dependencies = {}
        managed = {}
        if pom.parent_artifact_id and pom.parent_group_id and pom.parent_version:
            parent = await self._effective_model(
                ArtifactCoordinate(pom.parent_group_id, pom.parent_artifact_id, pom.parent_version), depth + 1
            )
            properties.update(parent.properties)
            dependencies.update((d.slug, d) for d in parent.dependencies)
            managed.update((d.slug, d) for d in parent.dep_management)
            properties["project.parent.version"] = parent.version or ""
            properties["project.parent.groupId"] = parent.group_id

        properties.update(pom.properties)
        properties.update({
            "project.groupId": pom.group_id,
            "project.artifactId": pom.artifact_id,
            "project.version": pom.version or coordinate.version,
            "project.packaging": pom.packaging,
            "groupId": pom.group_id,
            "artifactId": pom.artifact_id,
            "version": pom.version or coordinate.version,
        })

        # Local declarations are interpolated against the merged properties.
        for dep in pom.dep_management:
            dep = self._interpolated(dep, properties)
            if is_bom_import(dep):
                if not dep.version:
                    continue
                bom = await self._effective_model(
                    ArtifactCoordinate(dep.group_id, dep.artifact_id, dep.version), depth + 1
                )
                for imported in bom.dep_management:
                    managed.setdefault(imported.slug, imported)
            else:
                managed[dep.slug] = dep
        for dep in pom.dependencies:
            dep = self._interpolated(dep, properties)
            dependencies[dep.slug] = dep

        model = MavenModule(
            group_id=pom.group_id,
            artifact_id=pom.artifact_id,
            version=pom.version or coordinate.version,
            packaging=resolve_property(pom.packaging, properties) or "jar",
            parent_artifact_id=pom.parent_artifact_id,
            parent_group_id=pom.parent_group_id,
            parent_version=pom.parent_version,
            properties=properties,
            dependencies=list(dependencies.values()),
            dep_management=list(managed.values()),
        )
        self._models[key] = model
        return model

    @staticmethod
    def _interpolated(dep: Dependency, properties: dict) -> Dependency:
        return replace(
            dep,
            group_id=resolve_property(dep.group_id, properties),
            artifact_id=resolve_property(dep.artifact_id, properties),
            version=resolve_property(dep.version, properties),
            scope=resolve_property(dep.scope, properties),
            dep_type=resolve_property(dep.dep_type, properties),
            classifier=resolve_property(dep.classifier, properties),
        )

    @staticmethod
    def _resolved_dependencies(model: MavenModule) -> list:
        """Fill versions and scopes from dependency management, then keep build deps only."""
        managed = {d.slug: d for d in model.dep_management}
        result = []
        for dep in model.dependencies:
            managing = managed.get(dep.slug)
            version = dep.version or (managing.version if managing else None)
            scope = dep.scope or (managing.scope if managing else None) or "compile"
            result.append(replace(dep, version=version, scope=scope))
        return filter_build_deps(result)
