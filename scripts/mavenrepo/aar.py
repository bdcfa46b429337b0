"""Android archive (``.aar``) inspection.

Reads the custom package out of an aar's ``AndroidManifest.xml`` and lists the
secondary jars bundled under ``libs/``. A manifest may sit at the root of the
archive or inside a nested ``.aar`` entry, which is opened in memory.
"""

import enum
import io
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

MANIFEST = "AndroidManifest.xml"
LIBS_DIR = "libs/"


@dataclass(frozen=True)
class AarDetails:
    """What an aar contributes to its generated target.

    Attributes:
        custom_package: The manifest's ``package`` attribute.
        libs: Archive paths of the jars under ``libs/``, in archive order.
    """
    custom_package: str
    libs: list = field(default_factory=list)


class ExtractionProblem(enum.Enum):
    UNREADABLE = "unreadable archive"
    MANIFEST_NOT_FOUND = "manifest not found"
    MANIFEST_UNPARSEABLE = "manifest unparseable"
    NULL_PACKAGE = "null package"


@dataclass(frozen=True)
class ExtractionFailure:
    problem: ExtractionProblem
    message: str


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_manifest_package(content: bytes) -> Optional[str]:
    """Return the ``package`` attribute of a manifest's root ``<manifest>`` element.

    Raises:
        ET.ParseError: If the manifest is not well-formed XML.
    """
    root = ET.fromstring(content)
    if _local_name(root.tag) != "manifest":
        return None
    return root.get("package")


def _library_jars(archive: zipfile.ZipFile) -> list:
    return [
        name for name in archive.namelist()
        if name.startswith(LIBS_DIR) and name.endswith(".jar") and not name.endswith("/")
    ]


def nested_aar_entry(archive: zipfile.ZipFile) -> Optional[str]:
    """Name of the nested ``.aar`` entry holding the manifest, when the root has none."""
    names = archive.namelist()
    if MANIFEST in names:
        return None
    for name in names:
        if name.endswith(".aar"):
            with zipfile.ZipFile(io.BytesIO(archive.read(name))) as nested:
                if MANIFEST in nested.namelist():
                    return name
    return None


def _find_manifest(archive: zipfile.ZipFile):
    """Locate the manifest, descending into a nested aar when the root has none.

    Returns:
        ``(manifest_bytes, archive_holding_it)``, or ``(None, archive)`` when not found.
    """
    entry = nested_aar_entry(archive)
    if entry is not None:
        nested = zipfile.ZipFile(io.BytesIO(archive.read(entry)))
        return nested.read(MANIFEST), nested
    if MANIFEST in archive.namelist():
        return archive.read(MANIFEST), archive
    return None, archive


def extract_aar_details(path: Path) -> Union[AarDetails, ExtractionFailure]:
    """Inspect an aar payload.

    Args:
        path: The downloaded ``.aar`` file.

    Returns:
        The AarDetails, or an ExtractionFailure naming what went wrong. A
        manifest without a ``package`` attribute is reported as
        ``NULL_PACKAGE``, distinct from a missing manifest.
    """
    try:
        with zipfile.ZipFile(path) as archive:
            manifest, holder = _find_manifest(archive)
            if manifest is None:
                return ExtractionFailure(ExtractionProblem.MANIFEST_NOT_FOUND, f"No {MANIFEST} in {path}")
            libs = _library_jars(holder)
    except (zipfile.BadZipFile, OSError) as e:
        return ExtractionFailure(ExtractionProblem.UNREADABLE, f"Could not open {path}: {e}")

    try:
        package = parse_manifest_package(manifest)
    except ET.ParseError as e:
        return ExtractionFailure(ExtractionProblem.MANIFEST_UNPARSEABLE, f"Malformed {MANIFEST} in {path}: {e}")
    if not package:
        return ExtractionFailure(ExtractionProblem.NULL_PACKAGE, f"{MANIFEST} in {path} declares no package")
    return AarDetails(custom_package=package, libs=libs)
