"""Dependency edge computation.

Turns a resolved artifact's dependencies plus its ArtifactConfig into the
ordered, de-duplicated list of Bazel labels placed in its ``deps``, and
records every Maven dependency it keeps in the run's ConsistencyLedger.
"""

from .config import ArtifactConfig
from .ledger import ConsistencyLedger
from .mapping import (
    JETIFIER_ARTIFACT_MAPPING,
    JVM_PACKAGING_TYPES,
    group_path,
    is_bazel_label,
    target_name,
)
from .pom_models import UNVERSIONED, Dependency, ResolvedArtifact, unversioned_dependency


def target_for(dep: Dependency, repo_name: str, substitutes: dict, owner: ResolvedArtifact) -> str:
    """Format a dependency as a label relative to the artifact that depends on it.

    Rules, in order:
        1. A ``target_substitutes`` entry for the fully qualified label replaces it.
        2. A dependency in the owner's group becomes a package-relative ``:name``.
        3. An unsubstituted target named like its package's last path segment
           collapses to the package.

    Args:
        dep: The dependency to format.
        repo_name: Name of the generated workspace.
        substitutes: Substitutions for the owner's groupId.
        owner: The artifact whose BUILD file will hold the label.

    Returns:
        The Bazel label string.
    """
    bazel_package = f"@{repo_name}//{group_path(dep.group_id)}"
    leaf_package = bazel_package.split("/")[-1]
    target = target_name(dep.artifact_id)
    label = f"{bazel_package}:{target}"
    substituted = substitutes.get(label, label)
    if owner.group_id == dep.group_id:
        return substituted[len(bazel_package):] if substituted.startswith(bazel_package) else substituted
    if substituted != label:
        return substituted
    if leaf_package == target:
        return bazel_package
    return label


def is_packaging_compatible(owner_packaging: str, dep_type: str) -> bool:
    """JVM library artifacts only depend on JVM libraries, and everything else on non-libraries."""
    return (owner_packaging in JVM_PACKAGING_TYPES) == (dep_type in JVM_PACKAGING_TYPES)


def prepare_dependencies(
    resolved: ResolvedArtifact,
    config: ArtifactConfig,
    ledger: ConsistencyLedger,
    repo_name: str,
    target_substitutes: dict,
) -> list:
    """Compute the ``deps`` labels of one artifact.

    A ``build_snippet`` yields no edges. An explicit ``deps`` list replaces the
    resolved dependencies entirely. Otherwise the resolved dependencies are
    filtered (optional, excluded, packaging-incompatible), legacy support
    artifacts are rewritten to their androidX successors, and ``include``
    entries are appended. Maven dependencies that survive are recorded in the
    ledger under the artifact's coordinate.

    Args:
        resolved: The artifact being generated.
        config: Its ArtifactConfig.
        ledger: The run's ConsistencyLedger (written, never read, here).
        repo_name: Name of the generated workspace.
        target_substitutes: The specification's groupId -> substitution table.

    Returns:
        Labels in first-seen order, without duplicates.
    """
    if config.snippet is not None:
        return []
    substitutes = target_substitutes.get(resolved.group_id, {})

    if config.deps:
        labels = (
            dep if is_bazel_label(dep) else target_for(unversioned_dependency(dep), repo_name, substitutes, resolved)
            for dep in config.deps
        )
        return list(dict.fromkeys(labels))

    excluded = set(config.exclude)
    kept = []
    for dep in resolved.dependencies:
        if dep.optional or dep.slug in excluded:
            continue
        if not is_packaging_compatible(resolved.packaging, dep.type):
            continue
        replacement = JETIFIER_ARTIFACT_MAPPING.get(dep.slug)
        kept.append(unversioned_dependency(replacement) if replacement else dep)
    kept.extend(unversioned_dependency(i) for i in config.include if not is_bazel_label(i))

    labels = []
    for dep in kept:
        ledger.record(dep.slug, dep.version or UNVERSIONED, dependant=resolved.coordinate.coordinate)
        labels.append(target_for(dep, repo_name, substitutes, resolved))
    labels.extend(i for i in config.include if is_bazel_label(i))
    return list(dict.fromkeys(labels))
