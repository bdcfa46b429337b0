"""Maven data model classes.

Pure data structures representing Maven coordinates, parsed POM elements and
resolved artifacts. No behavior beyond derived properties, and no imports from
other mavenrepo modules.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Version used for dependencies synthesized from bare ``groupId:artifactId`` pairs.
UNVERSIONED = "<SOME_VERSION>"


@dataclass(frozen=True)
class ArtifactCoordinate:
    """A Maven ``groupId:artifactId:version`` triple.

    Attributes:
        group_id: Maven groupId (e.g. ``javax.inject``).
        artifact_id: Maven artifactId (e.g. ``javax.inject``).
        version: Version string (e.g. ``1``).
    """
    group_id: str
    artifact_id: str
    version: str

    @property
    def slug(self) -> str:
        """The version-independent ``groupId:artifactId`` identity."""
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def coordinate(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    def __str__(self) -> str:
        return self.coordinate


def parse_coordinate(spec: str) -> ArtifactCoordinate:
    """Parse a ``groupId:artifactId:version`` string.

    Args:
        spec: The coordinate string.

    Returns:
        The parsed ArtifactCoordinate.

    Raises:
        ValueError: If the string does not have exactly three non-empty parts.
    """
    parts = [p.strip() for p in spec.split(":")]
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Invalid artifact coordinate \"{spec}\", expected groupId:artifactId:version")
    return ArtifactCoordinate(*parts)


@dataclass
class Dependency:
    """A Maven ``<dependency>`` element.

    Captures the GAV coordinates along with scope, classifier, type and the
    optional flag. ``scope`` and ``dep_type`` stay ``None`` when the
    POM does not declare them, so managed values can be filled in later.

    Attributes:
        group_id: Maven groupId (e.g. ``com.google.guava``).
        artifact_id: Maven artifactId (e.g. ``guava``).
        version: Explicit version string, or ``None`` if managed elsewhere.
        scope: Maven scope, one of compile, provided, runtime, test, system, import.
        classifier: Optional classifier (e.g. ``sources``, ``tests``).
        dep_type: Optional packaging type (e.g. ``pom`` for BOM imports).
        optional: Whether the dependency is marked ``<optional>true</optional>``.
    """
    group_id: str
    artifact_id: str
    version: Optional[str] = None
    scope: Optional[str] = None
    classifier: Optional[str] = None
    dep_type: Optional[str] = None
    optional: bool = False

    @property
    def slug(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def type(self) -> str:
        """The declared type, defaulting to ``jar`` as Maven does."""
        return self.dep_type or "jar"


def unversioned_dependency(pair: str) -> Dependency:
    """Create a dependency from a ``groupId:artifactId`` pair with a placeholder version.

    Used when rewriting dependencies in contexts where no version is known,
    such as ``include``/``deps`` lists or legacy-artifact rewrites. Anything
    past the artifactId is ignored.

    Args:
        pair: A ``groupId:artifactId`` (or longer) string.

    Returns:
        A compile-scoped Dependency versioned with :data:`UNVERSIONED`.
    """
    group_id, artifact_id = pair.split(":")[:2]
    return Dependency(group_id=group_id, artifact_id=artifact_id, version=UNVERSIONED, scope="compile")


@dataclass
class MavenModule:
    """Parse result for a single POM file.

    Attributes:
        group_id: Maven groupId (inherited from parent if not declared).
        artifact_id: Maven artifactId.
        version: Version string (inherited from parent if not declared).
        packaging: Packaging type: jar, aar, bundle, pom, ...
        parent_artifact_id: Parent POM artifactId, if any.
        parent_group_id: Parent POM groupId, if any.
        parent_version: Parent POM version, if any.
        properties: ``<properties>`` dict.
        dependencies: Direct ``<dependencies>`` list.
        dep_management: ``<dependencyManagement>`` dependencies (BOMs and managed deps).
    """
    group_id: str
    artifact_id: str
    version: Optional[str] = None
    packaging: str = "jar"
    parent_artifact_id: Optional[str] = None
    parent_group_id: Optional[str] = None
    parent_version: Optional[str] = None
    properties: dict = field(default_factory=dict)
    dependencies: list = field(default_factory=list)
    dep_management: list = field(default_factory=list)


@dataclass(frozen=True)
class FileSpec:
    """A repository-relative file path and where it lives in the local cache.

    Attributes:
        path: Repository layout path (e.g. ``javax/inject/javax.inject/1/javax.inject-1.jar``).
        local_file: Location of the file within the local cache directory.
    """
    path: str
    local_file: Path


@dataclass(frozen=True)
class ResolvedArtifact:
    """A resolved artifact: coordinate, packaging, dependencies and file locations.

    Never mutated after resolution.

    Attributes:
        coordinate: The artifact's GAV.
        packaging: Effective ``<packaging>`` of the POM.
        dependencies: Direct dependencies after build-scope filtering.
        pom: The POM file.
        main: The main payload (jar, aar, ...).
        sources: The ``-sources.jar`` file, if the packaging has one.
    """
    coordinate: ArtifactCoordinate
    packaging: str
    dependencies: tuple
    pom: FileSpec
    main: FileSpec
    sources: Optional[FileSpec] = None

    @property
    def group_id(self) -> str:
        return self.coordinate.group_id

    @property
    def artifact_id(self) -> str:
        return self.coordinate.artifact_id

    @property
    def version(self) -> str:
        return self.coordinate.version

    @property
    def slug(self) -> str:
        return self.coordinate.slug
