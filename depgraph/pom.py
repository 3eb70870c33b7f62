"""
Declared dependencies of Maven artifacts.

The dependencies of an artifact are taken from its effective POM: the POM
with its parents applied (inherited dependencies, properties and
dependencyManagement, including imported BOMs), with properties interpolated
and missing versions and scopes taken from dependencyManagement. No
conflict resolution takes place, this is what the POM declares.
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .errors import MetadataLookupError
from .models import Dependency, default_classifier, management_key

logger = logging.getLogger(__name__)

PROPERTY_PATTERN = re.compile(r'\$\{([^}]+)\}')


def strip_namespaces(root: ET.Element) -> ET.Element:
    """Remove the namespace from every tag, POMs with and without xmlns then read alike."""
    for element in root.iter():
        if isinstance(element.tag, str) and '}' in element.tag:
            element.tag = element.tag.split('}', 1)[1]
    return root


def get_element_text(parent: Optional[ET.Element], tag_name: str) -> Optional[str]:
    """Get the stripped text content of a child element, None when missing or blank."""
    if parent is None:
        return None
    elem = parent.find(tag_name)
    if elem is not None and elem.text and elem.text.strip():
        return elem.text.strip()
    return None


def get_project_text(root: ET.Element, tag_name: str) -> Optional[str]:
    """Get a project coordinate, falling back to the <parent> element (groupId and version are inherited)."""
    return get_element_text(root, tag_name) or get_element_text(root.find('parent'), tag_name)


def interpolate(value: Optional[str], properties: Dict[str, str], max_iterations: int = 10) -> Optional[str]:
    """
    Resolve ${property} references, including nested ones.

    References to unknown properties are left in place.
    """
    if not value or '${' not in value:
        return value

    for _ in range(max_iterations):
        resolved = PROPERTY_PATTERN.sub(lambda m: properties.get(m.group(1), m.group(0)), value)
        if resolved == value:
            break
        value = resolved
    return value


def get_interpolated_text(parent: ET.Element, tag_name: str, properties: Dict[str, str]) -> Optional[str]:
    """Get the text content of a child element with properties resolved."""
    return interpolate(get_element_text(parent, tag_name), properties)


def parse_properties(root: ET.Element) -> Dict[str, str]:
    """Parse all properties from the <properties> section."""
    properties = {}
    props_elem = root.find('properties')
    if props_elem is not None:
        for prop in props_elem:
            if isinstance(prop.tag, str):
                properties[prop.tag] = (prop.text or '').strip()
    return properties


def describe(root: ET.Element) -> str:
    """groupId:artifactId:version of a POM, for messages."""
    return ":".join(
        get_project_text(root, tag) or '?' for tag in ('groupId', 'artifactId', 'version')
    )


def active_profiles(root: ET.Element) -> List[ET.Element]:
    """
    The profiles of a POM that are active by default.

    Other activations (jdk, os, property, file) are not evaluated, so those
    profiles never deactivate the default ones.
    """
    profiles = []
    for profile in root.findall('profiles/profile'):
        active = get_element_text(profile.find('activation'), 'activeByDefault') or ''
        if active.lower() == 'true':
            logger.debug(f"Activating profile {get_element_text(profile, 'id') or '?'} of {describe(root)}")
            profiles.append(profile)
    return profiles


def model_sections(root: ET.Element) -> List[ET.Element]:
    """The POM followed by its active profiles; later sections override earlier ones."""
    return [root] + active_profiles(root)


@dataclass
class ManagedDependency:
    """A dependencyManagement entry. Version and scope are None when not managed."""

    version: Optional[str] = None
    scope: Optional[str] = None


@dataclass
class PomModel:
    """The effective model of a POM, reduced to what the dependency graph needs."""

    group_id: str
    artifact_id: str
    version: str
    packaging: str = "jar"
    properties: Dict[str, str] = field(default_factory=dict)
    managed: Dict[str, ManagedDependency] = field(default_factory=dict)
    dependencies: List[Dependency] = field(default_factory=list)

    @property
    def artifact(self) -> Dependency:
        """The artifact this POM builds."""
        return Dependency(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            version=self.version,
            type=self.packaging,
        )

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


class PomDependencyLookup:
    """
    Looks up the dependencies an artifact declares, by building its effective POM.

    POMs come from a MavenRepository; effective models are cached by
    coordinates for the duration of the run.
    """

    def __init__(self, repository):
        """
        Initialize the lookup.

        Args:
            repository: Provides ``fetch_pom(group_id, artifact_id, version)``
        """
        self.repository = repository
        self._models: Dict[str, PomModel] = {}
        self._loading: Set[str] = set()

    def get_dependencies(self, dependency: Dependency) -> List[Dependency]:
        """
        Get the dependencies declared by a dependency.

        Raises:
            MetadataLookupError: Naming the dependency, when its effective POM cannot be built
        """
        try:
            model = self.load_model(dependency.group_id, dependency.artifact_id, dependency.version)
        except MetadataLookupError as e:
            if e.component == dependency.identity:
                raise
            raise MetadataLookupError(dependency.identity, str(e)) from e
        return model.dependencies

    def get_project(self, pom_file) -> PomModel:
        """
        Build the effective model of a local project POM.

        Parents are looked up through relativePath before the repository.
        """
        path = Path(pom_file).resolve()
        try:
            root = strip_namespaces(ET.parse(path).getroot())
        except (OSError, ET.ParseError) as e:
            raise MetadataLookupError(path, f"cannot read POM: {e}") from e
        model = self.build_model(root, path)
        logger.info(f"Project {model} declares {len(model.dependencies)} dependencies")
        return model

    def load_model(self, group_id: str, artifact_id: str, version: str) -> PomModel:
        """Build (or reuse) the effective model of a POM from the repository."""
        coordinates = f"{group_id}:{artifact_id}:{version}"
        if coordinates in self._models:
            return self._models[coordinates]
        if coordinates in self._loading:
            raise MetadataLookupError(coordinates, "POM imports itself")

        self._loading.add(coordinates)
        try:
            root = strip_namespaces(self.repository.fetch_pom(group_id, artifact_id, version))
            model = self.build_model(root, None)
        finally:
            self._loading.discard(coordinates)

        self._models[coordinates] = model
        logger.debug(f"{coordinates} declares {len(model.dependencies)} dependencies")
        return model

    def build_model(self, root: ET.Element, pom_file: Optional[Path]) -> PomModel:
        """
        Build the effective model of a parsed POM.

        Args:
            root: The (namespace-stripped) project element
            pom_file: Location of the POM on disk, None if it came from a repository
        """
        hierarchy = self._load_hierarchy(root, pom_file)
        description = describe(root)

        group_id = get_project_text(root, 'groupId')
        artifact_id = get_element_text(root, 'artifactId')
        version = get_project_text(root, 'version')
        if not (group_id and artifact_id and version):
            raise MetadataLookupError(description, "POM lacks groupId, artifactId or version")
        packaging = get_element_text(root, 'packaging') or 'jar'

        # Properties: oldest parent first, children and active profiles override
        properties: Dict[str, str] = {}
        for pom in hierarchy:
            for section in model_sections(pom):
                properties.update(parse_properties(section))
        version = interpolate(version, properties)
        properties.update(self._builtin_properties(root, group_id, artifact_id, version, packaging, pom_file))

        model = PomModel(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            packaging=packaging,
            properties=properties,
        )
        model.managed = self._dependency_management(hierarchy, properties, description)
        model.dependencies = self._dependencies(hierarchy, properties, model.managed, description)
        return model

    def _builtin_properties(self, root: ET.Element, group_id: str, artifact_id: str, version: str,
                            packaging: str, pom_file: Optional[Path]) -> Dict[str, str]:
        builtins = {}
        for prefix in ('project.', 'pom.', ''):
            builtins[f'{prefix}groupId'] = group_id
            builtins[f'{prefix}artifactId'] = artifact_id
            builtins[f'{prefix}version'] = version
        builtins['project.packaging'] = packaging
        if pom_file is not None:
            builtins['project.basedir'] = str(pom_file.parent)
            builtins['basedir'] = str(pom_file.parent)

        parent_elem = root.find('parent')
        if parent_elem is not None:
            for tag in ('groupId', 'artifactId', 'version'):
                value = get_element_text(parent_elem, tag)
                if value:
                    builtins[f'project.parent.{tag}'] = value
                    builtins[f'parent.{tag}'] = value
        return builtins

    def _load_hierarchy(self, root: ET.Element, pom_file: Optional[Path]) -> List[ET.Element]:
        """Return the POM and all its parents, oldest parent first."""
        hierarchy = [root]
        seen: Set[str] = set()
        current, current_file = root, pom_file

        while True:
            parent_elem = current.find('parent')
            if parent_elem is None:
                break

            group_id = get_element_text(parent_elem, 'groupId')
            artifact_id = get_element_text(parent_elem, 'artifactId')
            version = get_element_text(parent_elem, 'version')
            if not (group_id and artifact_id and version):
                raise MetadataLookupError(describe(current), "incomplete <parent> element")

            coordinates = f"{group_id}:{artifact_id}:{version}"
            if coordinates in seen:
                raise MetadataLookupError(describe(root), f"cycle in parent POMs at {coordinates}")
            seen.add(coordinates)

            parent_root, parent_file = self._find_local_parent(parent_elem, current_file, group_id, artifact_id, version)
            if parent_root is None:
                logger.debug(f"Fetching parent POM {coordinates}")
                parent_root = strip_namespaces(self.repository.fetch_pom(group_id, artifact_id, version))

            hierarchy.insert(0, parent_root)
            current, current_file = parent_root, parent_file

        return hierarchy

    def _find_local_parent(self, parent_elem: ET.Element, current_file: Optional[Path], group_id: str,
                           artifact_id: str, version: str) -> Tuple[Optional[ET.Element], Optional[Path]]:
        """Look for the parent POM on disk, through <relativePath> (default ../pom.xml)."""
        if current_file is None:
            return None, None

        relative_elem = parent_elem.find('relativePath')
        if relative_elem is not None and not (relative_elem.text or '').strip():
            # An empty relativePath disables the local lookup
            return None, None
        relative_path = relative_elem.text.strip() if relative_elem is not None else '../pom.xml'

        candidate = (current_file.parent / relative_path).resolve()
        if candidate.is_dir():
            candidate = candidate / 'pom.xml'
        if not candidate.is_file():
            return None, None

        try:
            candidate_root = strip_namespaces(ET.parse(candidate).getroot())
        except ET.ParseError as e:
            logger.debug(f"Ignoring unreadable local parent POM {candidate}: {e}")
            return None, None

        if (get_project_text(candidate_root, 'groupId') == group_id
                and get_element_text(candidate_root, 'artifactId') == artifact_id
                and get_project_text(candidate_root, 'version') == version):
            logger.debug(f"Found parent POM at: {candidate}")
            return candidate_root, candidate

        logger.debug(f"Local POM at {candidate} has different coordinates, using the repository")
        return None, None

    def _dependency_management(self, hierarchy: List[ET.Element], properties: Dict[str, str],
                               description: str) -> Dict[str, ManagedDependency]:
        """
        Merge the dependencyManagement sections of the hierarchy.

        Entries declared in a POM override those of its parents. Imported
        BOMs only add entries that are not managed yet; the nearest POM's
        imports come first.
        """
        managed: Dict[str, ManagedDependency] = {}
        imports_by_pom: List[List[Tuple[str, str, str]]] = []

        for pom in hierarchy:
            pom_imports = []
            elements = [
                elem
                for section in model_sections(pom)
                for elem in section.findall('dependencyManagement/dependencies/dependency')
            ]
            for elem in elements:
                group_id = get_interpolated_text(elem, 'groupId', properties)
                artifact_id = get_interpolated_text(elem, 'artifactId', properties)
                if not (group_id and artifact_id):
                    raise MetadataLookupError(description, "managed dependency without groupId or artifactId")
                dep_type = get_interpolated_text(elem, 'type', properties) or 'jar'
                scope = get_interpolated_text(elem, 'scope', properties)

                if scope == 'import' and dep_type == 'pom':
                    version = get_interpolated_text(elem, 'version', properties)
                    if not version or '${' in version:
                        raise MetadataLookupError(description, f"unresolvable version {version} for BOM import {group_id}:{artifact_id}")
                    pom_imports.append((group_id, artifact_id, version))
                    continue

                key = management_key(group_id, artifact_id, dep_type, get_interpolated_text(elem, 'classifier', properties))
                managed[key] = ManagedDependency(version=get_interpolated_text(elem, 'version', properties), scope=scope)
            imports_by_pom.insert(0, pom_imports)

        for pom_imports in imports_by_pom:
            for group_id, artifact_id, version in pom_imports:
                logger.debug(f"Importing BOM: {group_id}:{artifact_id}:{version}")
                bom = self.load_model(group_id, artifact_id, version)
                for key, entry in bom.managed.items():
                    managed.setdefault(key, entry)

        return managed

    def _dependencies(self, hierarchy: List[ET.Element], properties: Dict[str, str],
                      managed: Dict[str, ManagedDependency], description: str) -> List[Dependency]:
        """
        The declared dependencies, the POM's own first, then those inherited from parents.

        Within a POM, active profiles take precedence over the main section.
        """
        dependencies: Dict[str, Dependency] = {}
        for pom in reversed(hierarchy):
            for section in reversed(model_sections(pom)):
                for elem in section.findall('dependencies/dependency'):
                    dependency = self._effective_dependency(elem, properties, managed, description)
                    dependencies.setdefault(dependency.management_key, dependency)
        return list(dependencies.values())

    def _effective_dependency(self, elem: ET.Element, properties: Dict[str, str],
                              managed: Dict[str, ManagedDependency], description: str) -> Dependency:
        group_id = get_interpolated_text(elem, 'groupId', properties)
        artifact_id = get_interpolated_text(elem, 'artifactId', properties)
        if not (group_id and artifact_id):
            raise MetadataLookupError(description, "dependency without groupId or artifactId")
        dep_type = get_interpolated_text(elem, 'type', properties) or 'jar'
        classifier = get_interpolated_text(elem, 'classifier', properties)
        entry = managed.get(management_key(group_id, artifact_id, dep_type, classifier), ManagedDependency())

        version = get_interpolated_text(elem, 'version', properties) or entry.version
        if not version:
            raise MetadataLookupError(description, f"no version for dependency {group_id}:{artifact_id}")
        if '${' in version:
            raise MetadataLookupError(description, f"unresolvable version {version} for dependency {group_id}:{artifact_id}")

        return Dependency(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            type=dep_type,
            classifier=default_classifier(dep_type, classifier),
            scope=get_interpolated_text(elem, 'scope', properties) or entry.scope or 'compile',
        )
