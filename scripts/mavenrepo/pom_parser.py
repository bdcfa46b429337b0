"""Maven POM parsing, XML helpers, and property resolution.

Handles all interaction with POM documents: parsing coordinates, parent
info, properties, dependencies and dependency management, and resolving
Maven ``${...}`` property expressions.
"""

import re
import xml.etree.ElementTree as ET
from typing import Optional

from .pom_models import Dependency, MavenModule

# XML namespace used by Maven POM files (POM model version 4.0.0).
NS = {"m": "http://maven.apache.org/POM/4.0.0"}

_PROPERTY_REF = re.compile(r"\$\{([^}]+)\}")


def _find(el, tag, ns=NS):
    """Find a direct child XML element, trying with and without the Maven namespace.

    Args:
        el: Parent XML element to search within.
        tag: Tag name to look for (without namespace prefix).
        ns: Namespace mapping (defaults to Maven POM 4.0.0).

    Returns:
        The first matching child element, or ``None`` if not found.
    """
    result = el.find(f"m:{tag}", ns)
    if result is not None:
        return result
    return el.find(tag)


def _findall(el, tag, ns=NS):
    return list(el.findall(f"m:{tag}", ns)) + list(el.findall(tag))


def _text(el, tag, ns=NS):
    """Extract the stripped text of a child element, or ``None`` if absent or empty."""
    child = _find(el, tag, ns)
    if child is not None and child.text:
        return child.text.strip()
    return None


def _local_name(tag: str) -> str:
    return tag.split("}")[-1] if "}" in tag else tag


def _parse_dependency(dep_el) -> Dependency:
    """Parse a ``<dependency>`` XML element into a Dependency dataclass.

    Scope and type are left as ``None`` when absent so that managed values
    can be applied by the resolver.

    Args:
        dep_el: The ``<dependency>`` XML element.

    Returns:
        A populated Dependency instance.
    """
    optional_text = _text(dep_el, "optional")
    return Dependency(
        group_id=_text(dep_el, "groupId") or "",
        artifact_id=_text(dep_el, "artifactId") or "",
        version=_text(dep_el, "version"),
        scope=_text(dep_el, "scope"),
        classifier=_text(dep_el, "classifier"),
        dep_type=_text(dep_el, "type"),
        optional=bool(optional_text) and optional_text.lower() == "true",
    )


def _parse_dependency_list(container) -> list:
    if container is None:
        return []
    deps_el = _find(container, "dependencies")
    if deps_el is None:
        return []
    return [_parse_dependency(dep_el) for dep_el in _findall(deps_el, "dependency")]


def parse_pom_bytes(content: bytes) -> MavenModule:
    """Parse POM document content into a MavenModule.

    Handles both namespaced and non-namespaced POM files. Fields not present
    in the POM (groupId, version) are inherited from the ``<parent>`` block.

    Args:
        content: Raw POM XML.

    Returns:
        A populated MavenModule instance.

    Raises:
        xml.etree.ElementTree.ParseError: If the content is not well-formed XML.
    """
    root = ET.fromstring(content)

    parent_el = _find(root, "parent")
    parent_gid = parent_aid = parent_ver = None
    if parent_el is not None:
        parent_gid = _text(parent_el, "groupId")
        parent_aid = _text(parent_el, "artifactId")
        parent_ver = _text(parent_el, "version")

    properties = {}
    props_el = _find(root, "properties")
    if props_el is not None:
        for child in props_el:
            if not isinstance(child.tag, str):
                continue  # comments
            properties[_local_name(child.tag)] = (child.text or "").strip()

    return MavenModule(
        group_id=_text(root, "groupId") or parent_gid or "",
        artifact_id=_text(root, "artifactId") or "",
        version=_text(root, "version") or parent_ver,
        packaging=_text(root, "packaging") or "jar",
        parent_artifact_id=parent_aid,
        parent_group_id=parent_gid,
        parent_version=parent_ver,
        properties=properties,
        dependencies=_parse_dependency_list(root),
        dep_management=_parse_dependency_list(_find(root, "dependencyManagement")),
    )


def resolve_property(value: Optional[str], properties: dict, _depth: int = 0) -> Optional[str]:
    """Interpolate ``${property}`` references against a properties dict.

    Every reference in the string is substituted, so composite values like
    ``${major}.${minor}`` resolve too. Chains (``${foo}`` -> ``${bar}`` -> ``1.0``)
    are followed up to a depth of 10 to guard against circular references.
    Unknown references are left in place.

    Also tries stripping the ``project.`` and ``pom.`` prefixes for Maven's
    ``${project.version}`` style properties.

    Args:
        value: The string potentially containing ``${...}`` references.
        properties: Property dict of the effective model.
        _depth: Internal recursion counter (callers should not set this).

    Returns:
        The interpolated string. Returns ``None`` if value is ``None``.
    """
    if not value or "${" not in value or _depth > 10:
        return value

    def _lookup(match):
        name = match.group(1)
        for key in (name, name.replace("project.", "", 1), name.replace("pom.", "", 1)):
            if key in properties:
                return properties[key]
        return match.group(0)

    resolved = _PROPERTY_REF.sub(_lookup, value)
    if resolved == value:
        return value
    return resolve_property(resolved, properties, _depth + 1)


def is_bom_import(dep: Dependency) -> bool:
    """Check whether a dependency is a BOM import (``type=pom``, ``scope=import``)."""
    return dep.dep_type == "pom" and dep.scope == "import"
