"""The ``gen-maven-repo`` pipeline.

Declared artifacts flow through two stages connected by ``asyncio.Queue``s,
each served by ``threads`` worker tasks:

    1. resolve: fetch and model the POM, record the declaration.
    2. package: classify by packaging (inspecting aars off the event loop),
       compute dependency labels and render the declaration.

Once both queues have drained, declarations are grouped per Bazel package and
written, and the consistency checks run over the complete ledger. A failure
in one artifact never cancels the others; it only turns the exit status to 1.
"""

import asyncio
import enum
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from .aar import ExtractionFailure, ExtractionProblem, extract_aar_details
from .bazel_file_generator import (
    BUILD_FILE,
    apply_template,
    generate_rules_jvm_compatibility_targets,
    group_by_build_file,
    write_build_files,
    write_text_atomically,
)
from .config import RepositorySpecification
from .dependencies import prepare_dependencies
from .ledger import ConsistencyLedger, run_consistency_checks
from .output import Output
from .resolutions import (
    AarArtifactResolution,
    ArtifactResolution,
    FileArtifactResolution,
    JarArtifactResolution,
)
from .resolver import FetchOutcome, ResolutionFailure

JAR_PACKAGINGS = frozenset({"jar", "bundle"})


def _seconds_since(start: float) -> float:
    return round(time.monotonic() - start, 3)


@dataclass
class RunState:
    """Everything the workers accumulate during one run."""
    failed: bool = False
    resolved_count: int = 0
    declared_slugs: set = field(default_factory=set)
    unresolved: list = field(default_factory=list)
    resolutions: list = field(default_factory=list)
    applications: list = field(default_factory=list)


class UnknownPackagingStrategy(enum.Enum):
    """What to do with an artifact whose packaging has no dedicated template.

    The artifact is exposed as a ``filegroup`` in every case.
    """
    WARN = "WARN"
    FAIL = "FAIL"
    IGNORE = "IGNORE"

    def handle(self, resolution: FileArtifactResolution, output: Output, state: RunState) -> None:
        resolved = resolution.resolved
        if self is UnknownPackagingStrategy.WARN:
            output.out(f"WARNING: {resolved.coordinate} is not a handled package type, {resolved.packaging}")
        elif self is UnknownPackagingStrategy.FAIL:
            output.out(f"\nERROR: {resolved.coordinate} is not a supported packaging, {resolved.packaging}")
            state.failed = True


class MavenRepoGenerator:
    """Generates a Bazel workspace of BUILD files for a repository specification.

    Args:
        specification: The validated RepositorySpecification.
        workspace: Directory the BUILD files are written under.
        resolver: An object with ``artifact_for``, ``resolve`` and ``download``
            (normally an ``ArtifactResolver``).
        output: Where progress and errors are printed.
        threads: Number of worker tasks per stage.
        unknown_packaging: Handling of packagings other than jar, bundle and aar.
    """

    def __init__(
        self,
        specification: RepositorySpecification,
        workspace: Path,
        resolver,
        output: Output,
        threads: int = 1,
        unknown_packaging: UnknownPackagingStrategy = UnknownPackagingStrategy.WARN,
    ):
        self.specification = specification
        self.workspace = Path(workspace)
        self.resolver = resolver
        self.output = output
        self.threads = max(1, threads)
        self.unknown_packaging = unknown_packaging
        self.state = RunState()
        self.ledger = ConsistencyLedger()

    async def run(self) -> int:
        """Run the whole generation and return the exit status."""
        errors = self.specification.validate()
        if errors:
            for error in errors:
                self.output.out(f"ERROR: Invalid config: {error.message}")
            return 1

        start = time.monotonic()
        if self.specification.artifacts:
            self.workspace.mkdir(parents=True, exist_ok=True)
        self.output.out(f"Building workspace for {len(self.specification.artifacts)} artifacts")

        await self._process_artifacts()

        written = self._write_build_files()
        self.output.out(f"Generated {written} build files in {self.workspace}")

        if run_consistency_checks(
            self.specification, self.state.declared_slugs, self.state.unresolved, self.ledger, self.output
        ):
            self.state.failed = True

        if self.specification.generate_rules_jvm_compatibility_targets:
            content = generate_rules_jvm_compatibility_targets(self.specification, self.state.resolutions)
            try:
                write_text_atomically(self.workspace / BUILD_FILE, content)
                self.output.out(f"Generated root compatibility build file in {self.workspace}")
            except OSError as e:
                self.output.out(f"ERROR: Could not write {self.workspace / BUILD_FILE}: {e}")
                self.state.failed = True

        self.output.out(
            f"Resolved {self.state.resolved_count} artifacts with {self.threads} threads "
            f"in {_seconds_since(start)} seconds"
        )
        return 1 if self.state.failed else 0

    async def _process_artifacts(self) -> None:
        resolve_queue = asyncio.Queue()
        package_queue = asyncio.Queue()
        for item in self.specification.artifacts.items():
            resolve_queue.put_nowait(item)

        workers = []
        for _ in range(self.threads):
            workers.append(asyncio.create_task(
                self._worker(resolve_queue, lambda item: self._resolve(item, package_queue), lambda item: item[0])
            ))
            workers.append(asyncio.create_task(
                self._worker(package_queue, self._package, lambda r: r.resolved.coordinate.coordinate)
            ))

        # Resolve workers enqueue before marking their item done, so the
        # package queue is complete once the resolve queue has joined.
        await resolve_queue.join()
        await package_queue.join()
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, queue: asyncio.Queue, handle, describe) -> None:
        while True:
            item = await queue.get()
            try:
                await handle(item)
            except Exception as e:
                self.output.out(f"ERROR: Unexpected failure while processing {describe(item)}: {e}")
                self.state.failed = True
            finally:
                queue.task_done()

    async def _resolve(self, item, package_queue: asyncio.Queue) -> None:
        artifact_spec, config = item
        coordinate = self.resolver.artifact_for(artifact_spec)
        self.ledger.record(coordinate.slug, coordinate.version)
        self.state.declared_slugs.add(coordinate.slug)

        start = time.monotonic()
        result = await self.resolver.resolve(coordinate)
        if isinstance(result, ResolutionFailure):
            self.output.out(f"ERROR: Could not resolve {coordinate}: {result.message}")
            self.state.unresolved.append(replace(result, coordinate=coordinate.coordinate))
            self.state.failed = True
            return
        self.output.info(f"Resolved {coordinate} in {_seconds_since(start)} seconds")
        await package_queue.put(FileArtifactResolution(result, config))

    async def _package(self, resolution: FileArtifactResolution) -> None:
        self.state.resolved_count += 1
        packaging = resolution.resolved.packaging
        if packaging in JAR_PACKAGINGS:
            packaged = JarArtifactResolution(resolution.resolved, resolution.config)
        elif packaging == "aar":
            packaged = await self._extract_aar(resolution)
        else:
            self.unknown_packaging.handle(resolution, self.output, self.state)
            packaged = resolution
        if packaged is not None:
            self._render(packaged)

    async def _extract_aar(self, resolution: FileArtifactResolution) -> Optional[AarArtifactResolution]:
        resolved = resolution.resolved
        start = time.monotonic()
        status = await self.resolver.download(resolved)
        if not status.successful:
            self.output.out(f"Failed to download {resolved.coordinate}.")
            self.state.failed = True
            return None
        from_cache = " from cache" if status.outcome is FetchOutcome.FOUND_IN_CACHE else ""
        self.output.info(f"Downloaded {status.local_file}{from_cache} in {_seconds_since(start)} seconds")
        self.output.verbose(f"Extracting package metadata from {status.local_file}")

        details = await asyncio.to_thread(extract_aar_details, status.local_file)
        if isinstance(details, ExtractionFailure):
            if details.problem is ExtractionProblem.NULL_PACKAGE:
                self.output.out(f"ERROR: Null resource package for {resolved.coordinate}")
            else:
                self.output.out(f"ERROR: Could not extract pieces of aar {resolved.coordinate}: {details.message}")
            self.state.failed = True
            return None
        return AarArtifactResolution(
            resolved, resolution.config, custom_package=details.custom_package, libs=tuple(details.libs)
        )

    def _render(self, resolution: ArtifactResolution) -> None:
        resolved = resolution.resolved
        deps = prepare_dependencies(
            resolved,
            resolution.config,
            self.ledger,
            self.specification.name,
            self.specification.target_substitutes,
        )
        jetify = self.specification.should_jetify(resolved.group_id, resolved.artifact_id)
        self.state.resolutions.append(resolution)
        self.state.applications.append(apply_template(resolution, deps, jetify, self.workspace))

    def _write_build_files(self) -> int:
        grouped = group_by_build_file(self.state.applications)
        written = 0
        for path in sorted(grouped):
            try:
                write_build_files(path, grouped[path], self.specification.rules_label)
            except OSError as e:
                self.output.out(f"ERROR: Could not write {path}: {e}")
                self.state.failed = True
                continue
            written += 1
            self.output.verbose(f"Wrote {path}")
        return written


async def generate_repository(
    specification: RepositorySpecification,
    workspace: Path,
    resolver,
    output: Output,
    threads: int = 1,
    unknown_packaging: UnknownPackagingStrategy = UnknownPackagingStrategy.WARN,
) -> int:
    """Generate the BUILD files of a Maven repository workspace.

    Returns:
        0 if every artifact was generated and no consistency check found a
        problem, else 1.
    """
    generator = MavenRepoGenerator(
        specification, workspace, resolver, output, threads=threads, unknown_packaging=unknown_packaging
    )
    return await generator.run()
