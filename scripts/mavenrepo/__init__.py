"""Maven artifacts to Bazel BUILD files generation package."""

from .cli import main
from .config import ArtifactConfig, RepositorySpecification
from .pipeline import UnknownPackagingStrategy, generate_repository
from .pom_models import ArtifactCoordinate, Dependency, ResolvedArtifact
from .resolver import ArtifactResolver

__all__ = [
    "main",
    "generate_repository",
    "UnknownPackagingStrategy",
    "ArtifactConfig",
    "RepositorySpecification",
    "ArtifactCoordinate",
    "Dependency",
    "ResolvedArtifact",
    "ArtifactResolver",
]
