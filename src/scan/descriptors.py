"""Build descriptor parsing (pom.xml, basic build.gradle)."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import TYPE_CHECKING

from model.errors import InvalidInputError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

POM_FILENAME = "pom.xml"
GRADLE_FILENAME = "build.gradle"
GRADLE_SETTINGS_FILENAME = "settings.gradle"
DESCRIPTOR_FILENAMES = (POM_FILENAME, GRADLE_FILENAME)

_GRADLE_GROUP = re.compile(r"""group\s*=\s*['"]([^'"]+)['"]""")
_GRADLE_NAME = re.compile(r"""rootProject\.name\s*=\s*['"]([^'"]+)['"]""")
_GRADLE_DEPENDENCY = re.compile(
    r"""\b(?:implementation|api|compileOnly)\s*\(?\s*"""
    r"""(?:project\(\s*['"]:?(?P<project>[^'"]+)['"]\s*\)|['"](?P<coordinate>[^'"]+)['"])"""
)


@dataclass(frozen=True)
class Descriptor:
    """The parts of a build descriptor the scanner cares about."""

    path: Path
    artifact_id: str | None
    group_id: str | None
    packaging: str
    modules: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    parent_artifact_id: str | None = None


def find_descriptor(directory: Path) -> Path | None:
    """Return the build descriptor in ``directory``; pom.xml wins over Gradle."""
    for name in DESCRIPTOR_FILENAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _local(tag: str) -> str:
    return tag.rpartition("}")[2]


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if isinstance(child.tag, str) and _local(child.tag) == name:
            return child
    return None


def _children(element: ET.Element | None, name: str) -> list[ET.Element]:
    if element is None:
        return []
    return [
        child
        for child in element
        if isinstance(child.tag, str) and _local(child.tag) == name
    ]


def _text(element: ET.Element | None, name: str) -> str | None:
    if element is None:
        return None
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    value = child.text.strip()
    return value or None


def parse_pom(path: Path) -> Descriptor:
    """Parse a Maven POM.

    Only direct children of ``<project>`` are read, so the ``<parent>``
    block and ``<dependencyManagement>`` never leak into the module's own
    coordinates or dependency list. Comments are dropped by the parser.

    Raises:
        InvalidInputError: If the file cannot be read or is not well-formed.
    """
    logger.debug("Parsing %s", path)
    try:
        root = ET.parse(path).getroot()  # noqa: S314
    except ET.ParseError as exc:
        msg = f"Malformed build descriptor {path}: {exc}"
        raise InvalidInputError(msg, path=path) from exc
    except OSError as exc:
        msg = f"Cannot read build descriptor {path}: {exc}"
        raise InvalidInputError(msg, path=path) from exc

    parent = _child(root, "parent")
    group_id = _text(root, "groupId") or _text(parent, "groupId")
    modules = tuple(
        module.text.strip()
        for module in _children(_child(root, "modules"), "module")
        if module.text and module.text.strip()
    )
    dependencies = tuple(
        artifact
        for dep in _children(_child(root, "dependencies"), "dependency")
        if (artifact := _text(dep, "artifactId")) is not None
    )

    return Descriptor(
        path=path,
        artifact_id=_text(root, "artifactId"),
        group_id=group_id,
        packaging=_text(root, "packaging") or "jar",
        modules=modules,
        dependencies=dependencies,
        parent_artifact_id=_text(parent, "artifactId"),
    )


def _gradle_project_name(path: Path) -> str:
    settings = path.parent / GRADLE_SETTINGS_FILENAME
    if settings.is_file():
        try:
            match = _GRADLE_NAME.search(settings.read_text(encoding="utf-8"))
        except OSError as exc:
            logger.warning("Failed to read %s: %s", settings, exc)
        else:
            if match:
                return match.group(1)
    return path.parent.name


def parse_gradle(path: Path) -> Descriptor:
    """Parse a build.gradle file (group, project name and dependencies)."""
    logger.debug("Parsing %s", path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read build descriptor {path}: {exc}"
        raise InvalidInputError(msg, path=path) from exc

    group = _GRADLE_GROUP.search(content)
    dependencies = []
    for match in _GRADLE_DEPENDENCY.finditer(content):
        if match.group("project") is not None:
            # ':libs:shop-core' names the project by its last path segment.
            dependencies.append(match.group("project").rsplit(":", 1)[-1])
            continue
        parts = match.group("coordinate").split(":")
        dependencies.append(parts[1] if len(parts) >= 2 else parts[0])

    return Descriptor(
        path=path,
        artifact_id=_gradle_project_name(path),
        group_id=group.group(1) if group else None,
        packaging="jar",
        dependencies=tuple(dependencies),
    )


def parse_descriptor(path: Path) -> Descriptor:
    if path.name == GRADLE_FILENAME:
        return parse_gradle(path)
    return parse_pom(path)


def remove_module_declaration(path: Path, module_name: str) -> bool:
    """Drop one ``<module>`` line from a POM's ``<modules>`` block.

    Edits the text in place rather than re-serializing the tree so that
    formatting and comments survive. Returns True when a line was removed.
    """
    content = path.read_text(encoding="utf-8")
    pattern = re.compile(
        rf"^[ \t]*<module>\s*{re.escape(module_name)}\s*</module>[ \t]*\r?\n?",
        re.MULTILINE,
    )
    updated, count = pattern.subn("", content, count=1)
    if count == 0:
        return False
    path.write_text(updated, encoding="utf-8")
    return True


__all__ = [
    "DESCRIPTOR_FILENAMES",
    "GRADLE_FILENAME",
    "POM_FILENAME",
    "Descriptor",
    "find_descriptor",
    "parse_descriptor",
    "parse_gradle",
    "parse_pom",
    "remove_module_declaration",
]
