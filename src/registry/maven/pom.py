"""POM parsing: coordinates, properties, dependency management and dependencies."""
from __future__ import annotations

import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from constants import Constants
from errors import ConfigurationError
from versioning.models import Dependency, ProjectModel

logger = logging.getLogger(__name__)

_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")
_MAX_INTERPOLATION_PASSES = 10


@dataclass
class ParentRef:
    group_id: str
    artifact_id: str
    version: str
    relative_path: Optional[str] = None


@dataclass
class PomModel:
    """A single POM as written, before inheritance and interpolation."""
    group_id: Optional[str]
    artifact_id: str
    version: Optional[str]
    parent: Optional[ParentRef] = None
    properties: Dict[str, str] = field(default_factory=dict)
    managed: List[Dependency] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)


def _namespace(root: ET.Element) -> str:
    if root.tag.startswith("{"):
        return root.tag[:root.tag.index("}") + 1]
    return ""


def _child_text(elem: Optional[ET.Element], ns: str, name: str) -> Optional[str]:
    if elem is None:
        return None
    child = elem.find(f"{ns}{name}")
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _parse_dependencies(container: Optional[ET.Element], ns: str) -> List[Dependency]:
    if container is None:
        return []
    dependencies = []
    for dep in container.findall(f"{ns}dependency"):
        exclusions = []
        exclusions_elem = dep.find(f"{ns}exclusions")
        if exclusions_elem is not None:
            for exclusion in exclusions_elem.findall(f"{ns}exclusion"):
                group = _child_text(exclusion, ns, "groupId") or "*"
                artifact = _child_text(exclusion, ns, "artifactId") or "*"
                exclusions.append(f"{group}:{artifact}")
        dependencies.append(Dependency(
            group_id=_child_text(dep, ns, "groupId") or "",
            artifact_id=_child_text(dep, ns, "artifactId") or "",
            version=_child_text(dep, ns, "version"),
            type=_child_text(dep, ns, "type") or Constants.DEFAULT_TYPE,
            classifier=_child_text(dep, ns, "classifier"),
            scope=_child_text(dep, ns, "scope"),
            optional=(_child_text(dep, ns, "optional") or "false").lower() == "true",
            exclusions=tuple(exclusions),
        ))
    return dependencies


def parse_pom(text: str) -> PomModel:
    """Parse POM XML text.

    Raises:
        ConfigurationError: if the XML is malformed or has no artifactId.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigurationError(f"Malformed POM: {exc}") from exc
    ns = _namespace(root)

    parent = None
    parent_elem = root.find(f"{ns}parent")
    if parent_elem is not None:
        parent = ParentRef(
            group_id=_child_text(parent_elem, ns, "groupId") or "",
            artifact_id=_child_text(parent_elem, ns, "artifactId") or "",
            version=_child_text(parent_elem, ns, "version") or "",
            relative_path=_child_text(parent_elem, ns, "relativePath"),
        )

    artifact_id = _child_text(root, ns, "artifactId")
    if not artifact_id:
        raise ConfigurationError("POM has no artifactId")

    properties = {}
    properties_elem = root.find(f"{ns}properties")
    if properties_elem is not None:
        for prop in properties_elem:
            name = prop.tag[len(ns):] if ns and prop.tag.startswith(ns) else prop.tag
            properties[name] = (prop.text or "").strip()

    management = root.find(f"{ns}dependencyManagement")
    managed = _parse_dependencies(
        management.find(f"{ns}dependencies") if management is not None else None, ns
    )

    return PomModel(
        group_id=_child_text(root, ns, "groupId"),
        artifact_id=artifact_id,
        version=_child_text(root, ns, "version"),
        parent=parent,
        properties=properties,
        managed=managed,
        dependencies=_parse_dependencies(root.find(f"{ns}dependencies"), ns),
    )


def interpolate(value: Optional[str], properties: Dict[str, str]) -> Optional[str]:
    """Expand ``${...}`` references; unknown references are left in place."""
    if value is None or "${" not in value:
        return value
    for _ in range(_MAX_INTERPOLATION_PASSES):
        expanded = _PROPERTY_RE.sub(lambda m: properties.get(m.group(1), m.group(0)), value)
        if expanded == value:
            break
        value = expanded
    if "${" in value:
        logger.debug("Unresolved property reference in %s", value)
    return value


@dataclass
class EffectivePom:
    """A POM merged with its parents and interpolated."""
    group_id: str
    artifact_id: str
    version: str
    managed: Dict[str, Dependency]
    dependencies: List[Dependency]


def _interpolate_dependency(dep: Dependency, properties: Dict[str, str]) -> Dependency:
    return replace(
        dep,
        group_id=interpolate(dep.group_id, properties) or dep.group_id,
        artifact_id=interpolate(dep.artifact_id, properties) or dep.artifact_id,
        version=interpolate(dep.version, properties),
        type=interpolate(dep.type, properties) or Constants.DEFAULT_TYPE,
        classifier=interpolate(dep.classifier, properties),
        scope=interpolate(dep.scope, properties),
    )


def effective_pom(pom: PomModel, parents: Sequence[PomModel] = ()) -> EffectivePom:
    """Merge ``pom`` with its ancestors, nearest parent first."""
    chain = [pom] + list(parents)
    group_id = next((p.group_id for p in chain if p.group_id), None) \
        or (pom.parent.group_id if pom.parent else "")
    version = next((p.version for p in chain if p.version), None) \
        or (pom.parent.version if pom.parent else "")

    properties: Dict[str, str] = {}
    for ancestor in reversed(chain):
        properties.update(ancestor.properties)
    properties.update({
        "project.groupId": group_id,
        "project.artifactId": pom.artifact_id,
        "project.version": version,
        "pom.groupId": group_id,
        "pom.artifactId": pom.artifact_id,
        "pom.version": version,
        "groupId": group_id,
        "version": version,
    })
    if pom.parent is not None:
        properties["project.parent.groupId"] = pom.parent.group_id
        properties["project.parent.version"] = pom.parent.version
        properties["parent.version"] = pom.parent.version

    managed: Dict[str, Dependency] = {}
    for ancestor in reversed(chain):
        for dep in ancestor.managed:
            dep = _interpolate_dependency(dep, properties)
            managed[dep.qualified_name] = dep

    dependencies: List[Dependency] = []
    seen = set()
    for ancestor in chain:
        for dep in ancestor.dependencies:
            dep = _interpolate_dependency(dep, properties)
            if dep.qualified_name in seen:
                continue
            seen.add(dep.qualified_name)
            managed_dep = managed.get(dep.qualified_name)
            if managed_dep is not None:
                dep = replace(
                    dep,
                    version=dep.version or managed_dep.version,
                    scope=dep.scope or managed_dep.scope,
                    exclusions=dep.exclusions or managed_dep.exclusions,
                )
            dependencies.append(dep)

    return EffectivePom(group_id, pom.artifact_id, version, managed, dependencies)


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


def _local_parents(pom: PomModel, pom_path: str) -> List[PomModel]:
    parents: List[PomModel] = []
    current, current_path = pom, pom_path
    for _ in range(Constants.MAX_PARENT_DEPTH):
        if current.parent is None:
            break
        relative = current.parent.relative_path
        if relative is None:
            relative = os.path.join("..", Constants.POM_XML_FILE)
        candidate = os.path.normpath(os.path.join(os.path.dirname(current_path), relative))
        if os.path.isdir(candidate):
            candidate = os.path.join(candidate, Constants.POM_XML_FILE)
        if not os.path.isfile(candidate):
            logger.debug("Parent POM of %s not found locally at %s", current.artifact_id, candidate)
            break
        parent = parse_pom(_read(candidate))
        if parent.artifact_id != current.parent.artifact_id:
            logger.debug("POM at %s is not the declared parent %s", candidate, current.parent.artifact_id)
            break
        parents.append(parent)
        current, current_path = parent, candidate
    return parents


def load_project(path: str) -> ProjectModel:
    """Read a project's ``pom.xml`` (a directory is also accepted).

    Raises:
        OSError: if the file cannot be read.
        ConfigurationError: if the POM is malformed.
    """
    if os.path.isdir(path):
        path = os.path.join(path, Constants.POM_XML_FILE)
    pom = parse_pom(_read(path))
    effective = effective_pom(pom, _local_parents(pom, path))
    logger.info("Loaded project %s:%s:%s with %d dependencies", effective.group_id,
                effective.artifact_id, effective.version, len(effective.dependencies))
    return ProjectModel(
        group_id=effective.group_id,
        artifact_id=effective.artifact_id,
        version=effective.version,
        dependencies=effective.dependencies,
        managed_versions={
            name: dep.version for name, dep in effective.managed.items() if dep.version
        },
    )
