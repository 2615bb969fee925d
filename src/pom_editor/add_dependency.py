"""
Insert or upgrade a dependency declaration in a pom.xml.

Only ``project/dependencies`` is considered; ``dependencyManagement`` and
plugin dependencies are left alone. The file is written back only when the
declaration was added or its version raised; an upgrade changes nothing but
the bytes of the version text.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .cli_config import get_config
from .dependency import DEFAULT_TYPE, Dependency
from .error_handling import ErrorCategory, ManifestError, get_error_handler
from .parsers import PomDocument, declared_dependencies, load_pom, local_name
from .structured_logging import log_dependency_change
from .versioning import ComparableVersion

logger = logging.getLogger(__name__)

# <dependencies> goes before the first of these when it has to be created
_SECTIONS_AFTER_DEPENDENCIES = (
    "build",
    "reporting",
    "profiles",
    "repositories",
    "pluginRepositories",
)


class ChangeAction(Enum):
    ADDED = "added"
    UPGRADED = "upgraded"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DependencyChange:
    """What an insert-or-upgrade did to the manifest."""

    action: ChangeAction
    dependency: Dependency
    previous_version: Optional[str] = None
    reason: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.action is not ChangeAction.UNCHANGED


def add_dependency(pom_path: Path, dependency: Dependency) -> DependencyChange:
    """
    Add ``dependency`` to the POM, or raise its version if it is older.

    Raises:
        ManifestError: if the POM cannot be read, parsed or written
    """
    document = load_pom(str(pom_path))
    change = apply_dependency(document, dependency)

    if change.changed:
        try:
            document.write()
        except OSError as e:
            raise ManifestError(f"Error writing {document.path}: {e}") from e

    log_dependency_change(
        change.action.value,
        dependency.coordinates,
        str(document.path),
        previous_version=change.previous_version,
    )
    return change


def apply_dependency(document: PomDocument, dependency: Dependency) -> DependencyChange:
    """Apply the insert-or-upgrade to an in-memory document."""
    existing = find_dependency(document, dependency)

    if existing is None:
        _insert_dependency(document, dependency)
        return DependencyChange(ChangeAction.ADDED, dependency)

    version_element = document.child(existing, "version")
    current = (
        version_element.text.strip()
        if version_element is not None and version_element.text
        else None
    )

    if current is None:
        return _unchanged(
            document,
            dependency,
            None,
            "version is managed elsewhere (no <version> element)",
        )
    if current.startswith("${"):
        return _unchanged(
            document,
            dependency,
            current,
            f"version is the property reference {current}",
        )

    if ComparableVersion(dependency.version) > ComparableVersion(current):
        document.replace_text(version_element, dependency.version)
        return DependencyChange(ChangeAction.UPGRADED, dependency, previous_version=current)

    return DependencyChange(
        ChangeAction.UNCHANGED,
        dependency,
        previous_version=current,
        reason=f"declared version {current} is not older than {dependency.version}",
    )


def find_dependency(
    document: PomDocument, dependency: Dependency
) -> Optional[ET.Element]:
    """Find the declaration with the same group, artifact and classifier."""
    for element in declared_dependencies(document):
        if (
            document.child_text(element, "groupId") == dependency.group_id
            and document.child_text(element, "artifactId") == dependency.artifact_id
            and document.child_text(element, "classifier") == dependency.classifier
        ):
            return element
    return None


def _unchanged(
    document: PomDocument,
    dependency: Dependency,
    current: Optional[str],
    reason: str,
) -> DependencyChange:
    get_error_handler().warning(
        ErrorCategory.VALIDATION,
        f"Leaving {dependency.group_id}:{dependency.artifact_id} untouched: {reason}",
        "add_dependency",
        "apply_dependency",
        details={"file_path": document.path.name, "requested": dependency.version},
        suggestions=["Update the version where it is managed"],
    )
    return DependencyChange(
        ChangeAction.UNCHANGED, dependency, previous_version=current, reason=reason
    )


def _insert_dependency(document: PomDocument, dependency: Dependency) -> None:
    document.restructured = True
    unit = _indent_unit(document)
    section = document.child(document.root, "dependencies")
    if section is None:
        section = ET.Element(document.tag("dependencies"))
        _insert_child(
            document.root, _section_index(document.root), section, 1, unit
        )

    element = ET.Element(document.tag("dependency"))
    fields = [
        ("groupId", dependency.group_id),
        ("artifactId", dependency.artifact_id),
        ("version", dependency.version),
    ]
    if dependency.type != DEFAULT_TYPE:
        fields.append(("type", dependency.type))
    if dependency.classifier:
        fields.append(("classifier", dependency.classifier))
    if dependency.scope:
        fields.append(("scope", dependency.scope))

    for name, value in fields:
        leaf = ET.Element(document.tag(name))
        leaf.text = value
        _insert_child(element, len(element), leaf, 3, unit)

    _insert_child(section, len(section), element, 2, unit)
    logger.debug("inserted %s into %s", dependency.coordinates, document.path)


def _section_index(root: ET.Element) -> int:
    for index, element in enumerate(root):
        if local_name(element) in _SECTIONS_AFTER_DEPENDENCIES:
            return index
    return len(root)


def _indent_unit(document: PomDocument) -> str:
    """Indentation of the root's first child, or the configured default."""
    text = document.root.text or ""
    if "\n" in text:
        indent = text.rsplit("\n", 1)[1]
        if indent and not indent.strip(" \t"):
            return indent
    return get_config().edit.indent


def _newline_indent(depth: int, unit: str) -> str:
    return "\n" + unit * depth


def _insert_child(
    parent: ET.Element, index: int, child: ET.Element, depth: int, unit: str
) -> None:
    """
    Insert ``child`` at ``index`` with whitespace matching ``depth``.

    Whitespace before a child lives in the previous sibling's tail (or the
    parent's text), whitespace after the last child in that child's tail.
    """
    children = list(parent)
    child_ws = _newline_indent(depth, unit)

    if not children:
        parent.text = child_ws
        child.tail = _newline_indent(depth - 1, unit)
    elif index >= len(children):
        last = children[-1]
        child.tail = last.tail
        last.tail = child_ws
    else:
        child.tail = child_ws

    parent.insert(index, child)
