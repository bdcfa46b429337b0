"""Per-artifact results passed between pipeline stages.

An artifact resolution is one of three variants chosen by packaging:
``JarArtifactResolution`` for JVM jars, ``AarArtifactResolution`` for Android
libraries (with their custom package and bundled jars) and
``FileArtifactResolution`` for any other packaging, which is exposed as an
opaque file.
"""

from dataclasses import dataclass, field
from typing import Union

from .config import ArtifactConfig
from .pom_models import ResolvedArtifact


@dataclass(frozen=True)
class JarArtifactResolution:
    resolved: ResolvedArtifact
    config: ArtifactConfig


@dataclass(frozen=True)
class AarArtifactResolution:
    """An Android library.

    Attributes:
        resolved: The resolved artifact.
        config: Its ArtifactConfig.
        custom_package: Package declared by the aar's manifest.
        libs: Archive paths of the jars bundled under ``libs/``.
    """
    resolved: ResolvedArtifact
    config: ArtifactConfig
    custom_package: str
    libs: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class FileArtifactResolution:
    resolved: ResolvedArtifact
    config: ArtifactConfig


ArtifactResolution = Union[JarArtifactResolution, AarArtifactResolution, FileArtifactResolution]


@dataclass(frozen=True)
class TemplateApplication:
    """A rendered declaration and the resolution it was rendered from."""
    resolution: ArtifactResolution
    content: str

    @property
    def coordinate(self) -> str:
        return self.resolution.resolved.coordinate.coordinate
