"""Run-wide dependency ledger and the post-run consistency checks.

The ledger is written concurrently while artifacts are processed and only
read once every artifact task has finished. The four checks (duplicate
declarations, unresolved artifacts, legacy support artifacts and undeclared
dependencies) each report independently; none short-circuits another.
"""

import re
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from .mapping import JETIFIER_ARTIFACT_MAPPING
from .output import Output
from .pom_models import parse_coordinate


@dataclass
class IndexEntry:
    """Who depends on a slug, and which versions of it were asked for."""
    dependants: set = field(default_factory=set)
    versions: set = field(default_factory=set)


class ConsistencyLedger:
    """Thread-safe ``slug -> IndexEntry`` index with insert-or-get-then-update semantics."""

    def __init__(self):
        self._entries = {}
        self._lock = threading.Lock()

    def record(self, slug: str, version: str, dependant: Optional[str] = None) -> None:
        with self._lock:
            entry = self._entries.get(slug)
            if entry is None:
                entry = self._entries[slug] = IndexEntry()
            entry.versions.add(version)
            if dependant is not None:
                entry.dependants.add(dependant)

    def entries(self) -> dict:
        """A copy of the index, for use once recording has finished."""
        with self._lock:
            return {
                slug: IndexEntry(dependants=set(e.dependants), versions=set(e.versions))
                for slug, e in self._entries.items()
            }

    def __contains__(self, slug: str) -> bool:
        with self._lock:
            return slug in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def version_key(version: str) -> tuple:
    """Sort key ordering Maven versions numerically where they are numeric.

    Numeric tokens compare as integers and rank above textual qualifiers,
    which compare lexicographically (case-insensitively).

    Example:
        ``sorted(["1.10", "1.9.1", "1.9"], key=version_key)`` -> ``["1.9", "1.9.1", "1.10"]``
    """
    tokens = [t for t in re.split(r"[.\-_]", version) if t]
    return tuple((1, int(t), "") if t.isdigit() else (0, 0, t.lower()) for t in tokens)


def highest_version(versions) -> str:
    return max(versions, key=version_key)


def find_duplicate_artifacts(artifact_specs) -> dict:
    """Group declared coordinates by slug and return those declared with several versions.

    Returns:
        ``slug -> [versions]`` for every slug declared more than once.
    """
    by_slug = defaultdict(list)
    for spec in artifact_specs:
        coordinate = parse_coordinate(spec)
        by_slug[coordinate.slug].append(coordinate.version)
    return {slug: versions for slug, versions in sorted(by_slug.items()) if len(versions) > 1}


def find_legacy_artifacts(declared_slugs, specification) -> dict:
    """Declared legacy support artifacts, when jetification is enabled and the check is not suppressed.

    Artifacts matched by a jetifier exclusion glob are not reported.

    Returns:
        ``slug -> replacement slug``.
    """
    if not specification.use_jetifier or specification.ignore_legacy_android_support_artifacts:
        return {}
    found = {}
    for slug in sorted(declared_slugs):
        replacement = JETIFIER_ARTIFACT_MAPPING.get(slug)
        if replacement is None:
            continue
        group_id, artifact_id = slug.split(":", 1)
        if specification.jetifier_matcher.matches(group_id, artifact_id):
            continue
        found[slug] = replacement
    return found


def find_missing_artifacts(entries: dict, declared_slugs) -> dict:
    """Ledger entries for slugs that are depended upon but never declared."""
    return {slug: entry for slug, entry in sorted(entries.items()) if slug not in declared_slugs}


def report_duplicate_artifacts(duplicates: dict, output: Output) -> None:
    output.out("ERROR: Duplicate artifact entries are not permitted:")
    for slug, versions in duplicates.items():
        output.out(f"    {slug}: [{', '.join(versions)}]")


def report_unresolved_artifacts(failures: list, output: Output) -> None:
    failures = sorted(failures, key=lambda f: f.coordinate)
    output.out(f"ERROR: Failed to resolve the following artifacts: [{', '.join(f.coordinate for f in failures)}]")
    for failure in failures:
        status = f" ({failure.status_code})" if failure.status_code else ""
        output.out(
            f"    {failure.coordinate}: {failure.reason.value}{status} - {failure.message} "
            f"from [{', '.join(failure.repositories)}]"
        )


def report_legacy_artifacts(legacy: dict, output: Output) -> None:
    output.out("ERROR: Jetifier enabled but pre-androidX support artifacts specified:")
    for slug, replacement in legacy.items():
        output.out(f"    {slug} (should be {replacement})")


def report_missing_artifacts(missing: dict, output: Output) -> None:
    """Print remediation text: declarations to add, or exclusions for each dependant."""
    output.out("ERROR: Un-declared artifacts referenced in the dependencies of some artifacts.")
    output.out("Please exclude the following or add them to your artifact configuration list.")
    output.out("To add them, copy this into your artifact list:")
    for slug, entry in missing.items():
        output.out(f'    "{slug}:{highest_version(entry.versions)}": {{"insecure": True}},')
    output.out("To exclude them, add them to the exclude lists of their dependants:")
    for slug, entry in missing.items():
        for dependant in sorted(entry.dependants):
            output.out(f'    "{dependant}": {{"insecure": True, "exclude": ["{slug}"]}},')


def run_consistency_checks(specification, declared_slugs, unresolved, ledger: ConsistencyLedger, output: Output) -> bool:
    """Run all four checks, reporting each finding.

    Must only be called after every artifact task has completed.

    Args:
        specification: The RepositorySpecification of the run.
        declared_slugs: Slugs of every declared artifact.
        unresolved: ResolutionFailure values collected during the run.
        ledger: The populated ConsistencyLedger.
        output: Where findings are printed.

    Returns:
        ``True`` if any check found a problem.
    """
    failed = False
    duplicates = find_duplicate_artifacts(specification.artifacts.keys())
    if duplicates:
        failed = True
        report_duplicate_artifacts(duplicates, output)
    if unresolved:
        failed = True
        report_unresolved_artifacts(list(unresolved), output)
    legacy = find_legacy_artifacts(declared_slugs, specification)
    if legacy:
        failed = True
        report_legacy_artifacts(legacy, output)
    missing = find_missing_artifacts(ledger.entries(), declared_slugs)
    if missing:
        failed = True
        report_missing_artifacts(missing, output)
    return failed
