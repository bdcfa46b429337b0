"""Configuration models and JSON loading.

Covers the repository specification handed to ``gen-maven-repo``, the
per-artifact options inside it, the tool config (workspace name and Maven
repositories), and the environment-specific settings file (mirrors).
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .mapping import ArtifactExclusionGlob, JetifierMatcher, is_bazel_label
from .output import Output
from .pom_models import parse_coordinate

MAVEN_CENTRAL_URL = "https://repo1.maven.org/maven2"
GOOGLE_MAVEN_URL = "https://maven.google.com"


@dataclass(frozen=True)
class Repository:
    """A Maven repository to resolve artifacts from."""
    id: str
    url: str
    releases: bool = True
    snapshots: bool = False


DEFAULT_REPOSITORIES = (
    Repository(id="central", url=MAVEN_CENTRAL_URL),
    Repository(id="google", url=GOOGLE_MAVEN_URL),
)


@dataclass(frozen=True)
class ValidationError:
    """A configuration problem, attributed to an artifact where there is one."""
    artifact: Optional[str]
    message: str


def zero_or_one_of(*conditions: bool) -> bool:
    return sum(1 for c in conditions if c) <= 1


def is_artifact_pair(value) -> bool:
    """True for ``groupId:artifactId`` (anything after the artifactId is ignored)."""
    if not isinstance(value, str) or is_bazel_label(value):
        return False
    parts = value.split(":")
    return len(parts) >= 2 and bool(parts[0].strip()) and bool(parts[1].strip())


@dataclass
class ArtifactConfig:
    """Options for one declared artifact.

    Attributes:
        sha256: SHA-256 of the main artifact's content. Incompatible with ``insecure``.
        insecure: Explicit acknowledgement that the artifact's content is not hash-checked.
            Incompatible with ``sha256``.
        snippet: Build text which entirely replaces the generated target and disables
            dependency computation (``build_snippet`` in JSON).
        testonly: Marks the generated target ``testonly``. Incompatible with ``snippet``.
        deps: Replaces the computed dependencies. Maven ``groupId:artifactId`` pairs are
            turned into generated targets; Bazel labels pass through as-is.
        exclude: ``groupId:artifactId`` pairs omitted from the computed dependencies. Lenient:
            entries that match nothing are ignored.
        include: Extra dependencies added after exclusion, in the same forms as ``deps``.
    """
    sha256: Optional[str] = None
    insecure: bool = False
    snippet: Optional[str] = None
    testonly: bool = False
    deps: list = field(default_factory=list)
    exclude: list = field(default_factory=list)
    include: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ArtifactConfig":
        return cls(
            sha256=data.get("sha256"),
            insecure=bool(data.get("insecure", False)),
            snippet=data.get("build_snippet"),
            testonly=bool(data.get("testonly", False)),
            deps=list(data.get("deps") or []),
            exclude=list(dict.fromkeys(data.get("exclude") or [])),
            include=list(dict.fromkeys(data.get("include") or [])),
        )

    def validate(self, artifact: str) -> list:
        """Return every problem with this artifact's options (empty if valid)."""
        errors = []
        if self.insecure == (self.sha256 is not None):
            errors.append(
                ValidationError(artifact, f"{artifact} must be marked either with a sha256 or as insecure.")
            )
        if self.testonly and self.snippet is not None:
            errors.append(
                ValidationError(
                    artifact,
                    f"Do not set testonly on {artifact}. "
                    "It has a build_snippet and target generation is overridden",
                )
            )
        if not zero_or_one_of(
            self.snippet is not None,
            bool(self.deps),
            bool(self.include) or bool(self.exclude),
        ):
            errors.append(
                ValidationError(
                    artifact,
                    f"{artifact} may only be configured with build_snippet, or deps, or include/exclude"
                    " mechanisms. These are incompatible settings",
                )
            )
        for option, entries, labels_allowed in (
            ("deps", self.deps, True),
            ("include", self.include, True),
            ("exclude", self.exclude, False),
        ):
            for entry in entries:
                if is_artifact_pair(entry):
                    continue
                if labels_allowed and isinstance(entry, str) and is_bazel_label(entry):
                    continue
                expected = "groupId:artifactId or a Bazel label" if labels_allowed else "groupId:artifactId"
                errors.append(
                    ValidationError(
                        artifact, f'{artifact} has an invalid {option} entry "{entry}", expected {expected}'
                    )
                )
        return errors


@dataclass
class RepositorySpecification:
    """The whole input of a ``gen-maven-repo`` run. Read-only once loaded.

    Attributes:
        name: Name of the generated Bazel workspace (``@name//...``).
        artifacts: Declared ``groupId:artifactId:version`` -> ArtifactConfig.
        target_substitutes: groupId -> {generated label -> replacement label}.
        use_jetifier: Whether generated JVM imports are jetified.
        jetifier_excludes: ``groupId:artifactId`` globs exempt from jetification.
        rules_label: Repository providing ``//maven:jvm.bzl``.
        ignore_legacy_android_support_artifacts: Suppresses the legacy-artifact check.
        generate_rules_jvm_compatibility_targets: Writes the root alias BUILD file.
    """
    name: str
    artifacts: dict = field(default_factory=dict)
    target_substitutes: dict = field(default_factory=dict)
    use_jetifier: bool = False
    jetifier_excludes: list = field(default_factory=list)
    rules_label: str = "maven_repository_rules"
    ignore_legacy_android_support_artifacts: bool = False
    generate_rules_jvm_compatibility_targets: bool = False
    jetifier_matcher: JetifierMatcher = field(init=False, repr=False, compare=False)
    glob_errors: list = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # Globs are compiled once here, not per dependency. Bad ones surface in validate().
        globs = []
        self.glob_errors = []
        for glob in self.jetifier_excludes:
            try:
                globs.append(ArtifactExclusionGlob(glob))
            except ValueError as e:
                self.glob_errors.append(ValidationError(None, str(e)))
        self.jetifier_matcher = JetifierMatcher(globs)

    @classmethod
    def from_dict(cls, data: dict, default_name: Optional[str] = None) -> "RepositorySpecification":
        """Build a specification from parsed JSON; ``default_name`` applies when ``name`` is absent."""
        return cls(
            name=data.get("name") or default_name or "",
            artifacts={spec: ArtifactConfig.from_dict(cfg or {}) for spec, cfg in data.get("artifacts", {}).items()},
            target_substitutes=data.get("target_substitutes") or {},
            use_jetifier=bool(data.get("use_jetifier", False)),
            jetifier_excludes=list(data.get("jetifier_excludes") or []),
            rules_label=data.get("maven_rules_repository") or "maven_repository_rules",
            ignore_legacy_android_support_artifacts=bool(
                data.get("ignore_legacy_android_support_artifacts", False)
            ),
            generate_rules_jvm_compatibility_targets=bool(
                data.get("generate_rules_jvm_compatibility_targets", False)
            ),
        )

    def should_jetify(self, group_id: str, artifact_id: str) -> bool:
        return self.use_jetifier and not self.jetifier_matcher.matches(group_id, artifact_id)

    def validate(self) -> list:
        """Validate every declared artifact, collecting all problems."""
        errors = []
        if not self.name:
            errors.append(ValidationError(None, "The repository specification must have a name."))
        errors.extend(self.glob_errors)
        for artifact, config in self.artifacts.items():
            try:
                parse_coordinate(artifact)
            except ValueError as e:
                errors.append(ValidationError(artifact, str(e)))
            errors.extend(config.validate(artifact))
        return errors


@dataclass
class Mirror:
    id: str
    url: str


@dataclass
class Settings:
    """Environment-specific overrides; mirrors replace the URL of a same-id repository."""
    mirrors: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        return cls(mirrors=[Mirror(id=m["id"], url=m["url"]) for m in data.get("mirrors", [])])


@dataclass
class ToolConfig:
    """Settings shared by all commands: workspace name and repositories."""
    workspace_name: Optional[str] = None
    repositories: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ToolConfig":
        return cls(
            workspace_name=data.get("name"),
            repositories=[
                Repository(
                    id=r["id"],
                    url=r["url"],
                    releases=bool(r.get("releases", True)),
                    snapshots=bool(r.get("snapshots", False)),
                )
                for r in data.get("repositories", [])
            ],
        )


def effective_repositories(config: ToolConfig, settings: Settings) -> list:
    """Configured repositories (or the defaults) with mirror URLs applied by id."""
    mirrors = {m.id: m.url for m in settings.mirrors}
    repositories = config.repositories or list(DEFAULT_REPOSITORIES)
    return [
        Repository(id=r.id, url=mirrors[r.id], releases=r.releases, snapshots=r.snapshots)
        if r.id in mirrors else r
        for r in repositories
    ]


def load_json(path: Path, output: Output) -> dict:
    """Read a JSON file into a dict.

    Raises:
        ValueError: If the file is not valid JSON, naming the file.
    """
    output.info(f"Parsing {path}")
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{e} from {path}") from e


def load_repository_specification(path: Path, output: Output, default_name: Optional[str] = None):
    """Load and validate a repository specification file.

    Returns:
        A ``(specification, errors)`` tuple. ``specification`` is ``None`` when
        the file could not be turned into one at all; ``errors`` holds every
        ValidationError found.
    """
    try:
        data = load_json(path, output)
        spec = RepositorySpecification.from_dict(data, default_name)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        message = f"missing required key {e} in {path}" if isinstance(e, KeyError) else str(e)
        return None, [ValidationError(None, message)]
    return spec, spec.validate()


def load_settings(path: Optional[Path], output: Output) -> Settings:
    if path is None:
        return Settings()
    return Settings.from_dict(load_json(path, output))


def load_tool_config(path: Optional[Path], output: Output) -> ToolConfig:
    if path is None:
        return ToolConfig()
    return ToolConfig.from_dict(load_json(path, output))
