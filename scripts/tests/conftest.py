"""Shared test fixtures for the Maven-to-Bazel test suite."""

import io
import json
import textwrap
import zipfile
from pathlib import Path

import pytest

from mavenrepo.config import DEFAULT_REPOSITORIES, RepositorySpecification
from mavenrepo.output import Output
from mavenrepo.pom_models import Dependency, FileSpec, ResolvedArtifact, parse_coordinate
from mavenrepo.resolver import (
    PACKAGING_EXTENSIONS,
    FailureReason,
    FetchOutcome,
    FetchStatus,
    ResolutionFailure,
    artifact_path,
)

MANIFEST_TEMPLATE = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '<manifest xmlns:android="http://schemas.android.com/apk/res/android"{package}>\n'
    '    <uses-sdk android:minSdkVersion="14" />\n'
    "</manifest>\n"
)


class FakeResolver:
    """In-memory stand-in for ArtifactResolver.

    Artifacts registered with ``add`` resolve; anything else fails as not
    found. Payload files are written into ``cache_dir`` so downloads report
    ``FOUND_IN_CACHE``.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir
        self.repositories = list(DEFAULT_REPOSITORIES)
        self.artifacts = {}
        self.failures = {}
        self.resolve_calls = []

    @property
    def repository_urls(self) -> tuple:
        return tuple(r.url for r in self.repositories)

    def add(self, coordinate, packaging="jar", dependencies=(), payload=b"payload") -> ResolvedArtifact:
        coord = parse_coordinate(coordinate)
        extension = PACKAGING_EXTENSIONS.get(packaging, packaging)
        pom = FileSpec(artifact_path(coord, "pom"), self.cache_dir / artifact_path(coord, "pom"))
        main = FileSpec(artifact_path(coord, extension), self.cache_dir / artifact_path(coord, extension))
        pom.local_file.parent.mkdir(parents=True, exist_ok=True)
        pom.local_file.write_text("<project/>", encoding="utf-8")
        if payload is not None:
            main.local_file.write_bytes(payload)
        resolved = ResolvedArtifact(
            coordinate=coord,
            packaging=packaging,
            dependencies=tuple(dependencies),
            pom=pom,
            main=main,
        )
        self.artifacts[coord.coordinate] = resolved
        return resolved

    def fail(self, coordinate, reason=FailureReason.FETCH_ERROR, message="connection refused", status_code=None):
        self.failures[coordinate] = ResolutionFailure(
            coordinate=coordinate,
            reason=reason,
            message=message,
            repository="central",
            status_code=status_code,
            repositories=self.repository_urls,
        )

    def artifact_for(self, spec):
        return parse_coordinate(spec)

    async def resolve(self, coordinate):
        self.resolve_calls.append(coordinate.coordinate)
        if coordinate.coordinate in self.failures:
            return self.failures[coordinate.coordinate]
        if coordinate.coordinate in self.artifacts:
            return self.artifacts[coordinate.coordinate]
        return ResolutionFailure(
            coordinate=coordinate.coordinate,
            reason=FailureReason.NOT_FOUND,
            message=f"{coordinate} not found",
            repositories=self.repository_urls,
        )

    async def download(self, resolved):
        if resolved.main.local_file.exists():
            return FetchStatus(FetchOutcome.FOUND_IN_CACHE, local_file=resolved.main.local_file)
        return FetchStatus(FetchOutcome.NOT_FOUND, message=f"{resolved.main.path} not found")


@pytest.fixture
def fake_resolver(tmp_path):
    return FakeResolver(tmp_path / "cache")


@pytest.fixture
def output():
    """An Output writing to a StringIO; read it back with ``output.stream.getvalue()``."""
    return Output(verbosity=0, stream=io.StringIO())


@pytest.fixture
def verbose_output():
    return Output(verbosity=2, stream=io.StringIO())


@pytest.fixture
def dep():
    """Factory fixture building a Dependency from a ``groupId:artifactId[:version]`` string."""
    def _dep(spec: str, scope="compile", dep_type=None, optional=False) -> Dependency:
        parts = spec.split(":")
        return Dependency(
            group_id=parts[0],
            artifact_id=parts[1],
            version=parts[2] if len(parts) > 2 else None,
            scope=scope,
            dep_type=dep_type,
            optional=optional,
        )
    return _dep


@pytest.fixture
def specification():
    """Factory fixture building a RepositorySpecification from its JSON form."""
    def _spec(artifacts: dict, **options) -> RepositorySpecification:
        data = {"name": options.pop("name", "maven"), "artifacts": artifacts}
        data.update(options)
        return RepositorySpecification.from_dict(data)
    return _spec


@pytest.fixture
def write_json(tmp_path):
    """Factory fixture that writes a dict as JSON and returns the path."""
    def _write(name: str, data: dict) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def pom_xml():
    """Factory fixture turning an indented POM literal into document bytes."""
    def _pom(content: str) -> bytes:
        return textwrap.dedent(content).encode("utf-8")
    return _pom


def build_aar(package="com.example.widget", libs=(), manifest=None, nested=False) -> bytes:
    """Bytes of an aar with a manifest, ``classes.jar`` and the given ``libs/`` jars.

    ``manifest`` overrides the generated manifest text; ``package=None`` omits the
    attribute. With ``nested=True`` the aar is wrapped inside another archive.
    """
    if manifest is None:
        manifest = MANIFEST_TEMPLATE.format(package=f' package="{package}"' if package else "")
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("AndroidManifest.xml", manifest)
        archive.writestr("classes.jar", b"classes")
        archive.writestr("res/values/values.xml", "<resources/>")
        for lib in libs:
            archive.writestr(f"libs/{lib}", b"lib")
    if not nested:
        return buffer.getvalue()
    outer = io.BytesIO()
    with zipfile.ZipFile(outer, "w") as archive:
        archive.writestr("README.txt", "bundle")
        archive.writestr("bundle/library.aar", buffer.getvalue())
    return outer.getvalue()


@pytest.fixture
def aar_bytes():
    return build_aar
