"""Bazel build file generators.

Renders one declaration per resolved artifact (``raw_jvm_import`` for jars,
``android_library`` plus its class and bundled-jar imports for aars, and a
``filegroup`` for anything else), groups the declarations by Bazel package
and writes one ``BUILD.bazel`` file per package. Also produces the root alias
file and the BUILD files of the per-artifact fetch repositories.

Rendering functions take resolved data as input and return strings; only
``write_build_files`` and ``write_text_atomically`` touch the filesystem.
"""

import os
import tempfile
from collections import defaultdict
from pathlib import Path, PurePosixPath

from .config import RepositorySpecification
from .mapping import fetch_repo_package, group_path, target_name
from .resolutions import (
    AarArtifactResolution,
    ArtifactResolution,
    JarArtifactResolution,
    TemplateApplication,
)

HEADER = "# Generated build file - do not modify"
RAW_LOAD_HEADER_TEMPLATE = '\nload("@%s//maven:jvm.bzl", "raw_jvm_import")\n'
ANDROID_LOAD_HEADER = '\nload("@build_bazel_rules_android//android:rules.bzl", "android_library")\n'

BUILD_FILE = "BUILD.bazel"
PUBLIC_VISIBILITY = '["//visibility:public"]'

COMPATIBILITY_PREAMBLE = (
    "# Aliases from rules_jvm_external-style root targets to bazel_maven_repository\n"
    "# package-name-spaced targets.\n"
    'package(default_visibility = ["//visibility:public"])\n'
    "\n"
    "# Aliases\n"
    "\n"
)


# ── Target templates ──


def maven_jar_template(target, coordinate, jetify, deps, fetch_repo, testonly, visibility) -> str:
    return f"""
# {coordinate}
raw_jvm_import(
    name = "{target}",
    jar = "{fetch_repo}",
    visibility = {visibility},{jetify}
    deps = [{deps}],{testonly}
)
"""


def maven_file_template(target, coordinate, deps, fetch_repo, testonly, visibility) -> str:
    return f"""
# {coordinate}
filegroup(
    name = "{target}",
    srcs = ["{fetch_repo}"],
    visibility = {visibility},
    data = [{deps}],{testonly}
)
"""


def _lib_target(target: str, jar: str) -> str:
    return f"{target}_libs_{PurePosixPath(jar).name.replace('.jar', '')}"


def _lib_targets(target: str, libs) -> str:
    if not libs:
        return ""
    lines = "\n".join(f'        ":{_lib_target(target, jar)}",' for jar in libs)
    return f"\n{lines}\n    "


def maven_aar_libs_template(target, jetify, fetch_repo, libs) -> str:
    """One ``raw_jvm_import`` per jar bundled in an aar's ``libs/`` directory."""
    return "\n".join(
        f"""
raw_jvm_import(
    name = "{_lib_target(target, jar)}",
    jar = "{fetch_repo}:libs/{PurePosixPath(jar).name}",{jetify}
)"""
        for jar in libs
    )


def maven_aar_template(
    target, coordinate, custom_package, jetify, deps, fetch_repo, testonly, visibility, libs
) -> str:
    """An aar's class import, its ``android_library`` and the imports of its bundled jars.

    The ``android_library`` exports the class import and the bundled jars, so
    dependants see everything the aar ships.
    """
    lib_targets = _lib_targets(target, libs)
    return f"""
# {coordinate} raw classes
raw_jvm_import(
    name = "{target}_classes",
    jar = "{fetch_repo}",{jetify}
    deps = [{deps}],
)

# {coordinate} library target
android_library(
    name = "{target}",
    manifest = "{fetch_repo}:AndroidManifest.xml",
    custom_package = "{custom_package}",
    visibility = {visibility},
    resource_files = ["{fetch_repo}:resources"],
    assets = ["{fetch_repo}:assets"],
    assets_dir = "assets",
    deps = [":{target}_classes"] + [{lib_targets}] + [{deps}],{testonly}
    exports = [":{target}_classes"] + [{lib_targets}],
)
{maven_aar_libs_template(target, jetify, fetch_repo, libs)}
"""


def format_deps(labels) -> str:
    """Lay out dependency labels one per line inside a ``[...]`` list."""
    text = "".join(f'        "{label}",\n' for label in labels)
    return f"\n{text}    " if text.strip() else text


def render(resolution: ArtifactResolution, deps: list, jetify: bool) -> str:
    """Render the declaration of one artifact.

    A ``build_snippet`` replaces the generated declaration verbatim. Otherwise
    the template is chosen by the resolution's variant.

    Args:
        resolution: The artifact's resolution.
        deps: Its computed dependency labels.
        jetify: Whether JVM imports are marked ``jetify = True``.

    Returns:
        The declaration text.
    """
    resolved, config = resolution.resolved, resolution.config
    if config.snippet is not None:
        return config.snippet

    target = target_name(resolved.artifact_id)
    coordinate = resolved.coordinate.coordinate
    fetch_repo = fetch_repo_package(resolved.group_id, resolved.artifact_id)
    jetify_text = "\n    jetify = True," if jetify else ""
    testonly = "\n    testonly = True," if config.testonly else ""
    deps_text = format_deps(deps)

    if isinstance(resolution, AarArtifactResolution):
        return maven_aar_template(
            target=target,
            coordinate=coordinate,
            custom_package=resolution.custom_package,
            jetify=jetify_text,
            deps=deps_text,
            fetch_repo=fetch_repo,
            testonly=testonly,
            visibility=PUBLIC_VISIBILITY,
            libs=resolution.libs,
        )
    if isinstance(resolution, JarArtifactResolution):
        return maven_jar_template(
            target=target,
            coordinate=coordinate,
            jetify=jetify_text,
            deps=deps_text,
            fetch_repo=fetch_repo,
            testonly=testonly,
            visibility=PUBLIC_VISIBILITY,
        )
    return maven_file_template(
        target=target,
        coordinate=coordinate,
        deps=deps_text,
        fetch_repo=fetch_repo,
        testonly=testonly,
        visibility=PUBLIC_VISIBILITY,
    )


def apply_template(resolution: ArtifactResolution, deps: list, jetify: bool, workspace: Path):
    """Render a resolution and pair it with the BUILD file it belongs in.

    Returns:
        ``(build_file_path, TemplateApplication)``.
    """
    path = Path(workspace) / group_path(resolution.resolved.group_id) / BUILD_FILE
    return path, TemplateApplication(resolution, render(resolution, deps, jetify))


# ── Aggregation and writing ──


def group_by_build_file(pairs) -> dict:
    """Collect ``(path, TemplateApplication)`` pairs into ``path -> [applications]``."""
    grouped = defaultdict(list)
    for path, application in pairs:
        grouped[path].append(application)
    return dict(grouped)


def build_file_content(applications, rules_label: str) -> str:
    """Concatenate a package's declarations under the generated-file preamble.

    Declarations are ordered by coordinate so repeated runs produce identical
    files. The ``android_library`` load line is added only when the package
    holds an aar.
    """
    ordered = sorted(applications, key=lambda a: a.coordinate)
    android = any(isinstance(a.resolution, AarArtifactResolution) for a in ordered)
    prefix = HEADER + (ANDROID_LOAD_HEADER if android else "") + RAW_LOAD_HEADER_TEMPLATE % rules_label
    content = prefix + "\n".join(a.content for a in ordered)
    return content.rstrip("\n") + "\n"


def write_text_atomically(path: Path, content: str) -> None:
    """Create parent directories, then replace ``path`` in a single rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def write_build_files(path: Path, applications, rules_label: str) -> Path:
    write_text_atomically(path, build_file_content(applications, rules_label))
    return path


def generate_rules_jvm_compatibility_targets(specification: RepositorySpecification, resolutions) -> str:
    """Root BUILD file aliasing ``group_artifact`` names to the generated targets.

    Example line::

        alias(name = "javax_inject_javax_inject", actual = "@maven//javax/inject:javax_inject") # javax.inject:javax.inject:1
    """
    lines = []
    for resolution in sorted(resolutions, key=lambda r: r.resolved.coordinate.coordinate):
        artifact = resolution.resolved
        alias = f"{artifact.group_id}_{artifact.artifact_id}".replace(".", "_").replace("-", "_")
        actual = f"@{specification.name}//{group_path(artifact.group_id)}:{target_name(artifact.artifact_id)}"
        lines.append(f'alias(name = "{alias}", actual = "{actual}") # {artifact.coordinate}')
    return COMPATIBILITY_PREAMBLE + "\n".join(lines) + "\n"


# ── Fetch repository BUILD files ──


def _srcs(files) -> str:
    return "".join(f'\n            "{f}",' for f in files)


def fetch_artifact_template(prefix: str, files) -> str:
    return f"""package(default_visibility = ["//visibility:public"])
filegroup(
    name = "{prefix}",
    srcs = [{_srcs(files)}
    ],
)
"""


def aar_artifact_template(prefix: str, files) -> str:
    """BUILD file for an unpacked aar: its classes plus resource, asset and proguard groups."""
    return f"""package(default_visibility = ["//visibility:public"])
exports_files(["AndroidManifest.xml"] + glob(["libs/*.jar"]))

filegroup(
    name = "{prefix}",
    srcs = [{_srcs(files)}
    ],
)

filegroup(
    name = "resources",
    srcs = glob(["res/**/*"])
)

filegroup(
    name = "assets",
    srcs = glob(["assets/**/*"])
)

filegroup(
    name = "proguard",
    srcs = glob(["proguard.txt"])
)
"""
