"""Template catalog.

The wizard only reads from the catalog: it looks templates up by identity and
finds the project template for a project type/framework pair.

``FileSystemCatalog`` discovers templates laid out as::

    <root>/
        version.txt               # optional, catalog version string
        <any folder>/
            template.yaml         # descriptor
            content/              # files rendered by the template engine
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

import yaml
from pydantic import ValidationError

from template_wizard.models import PostActionSpec, TemplateDescriptor, TemplateType

DESCRIPTOR_FILE = "template.yaml"
CONTENT_DIR = "content"
VERSION_FILE = "version.txt"
DEFAULT_VERSION = "0.0.0"


class CatalogError(Exception):
    """Raised when a template descriptor cannot be loaded."""


class TemplateCatalog(Protocol):
    """Read-only access to template descriptors."""

    def get(self, identity: str) -> Optional[TemplateDescriptor]: ...

    def find_project(self, project_type: str, framework: str) -> Optional[TemplateDescriptor]: ...

    def version(self) -> str: ...


class StaticCatalog:
    """Catalog over an in-memory collection of descriptors."""

    def __init__(self, templates: Iterable[TemplateDescriptor], version: str = DEFAULT_VERSION) -> None:
        self._templates: dict[str, TemplateDescriptor] = {}
        for template in templates:
            if template.identity in self._templates:
                raise CatalogError(f"Duplicate template identity '{template.identity}'")
            self._templates[template.identity] = template
        self._version = version

    def __len__(self) -> int:
        return len(self._templates)

    def all(self) -> list[TemplateDescriptor]:
        """Return every descriptor sorted by identity."""
        return [self._templates[k] for k in sorted(self._templates)]

    def get(self, identity: str) -> Optional[TemplateDescriptor]:
        return self._templates.get(identity)

    def find_project(self, project_type: str, framework: str) -> Optional[TemplateDescriptor]:
        """Return the first project template (by identity) supporting the pair."""
        for template in self.all():
            if template.template_type == TemplateType.PROJECT and template.supports(
                project_type, framework
            ):
                return template
        return None

    def version(self) -> str:
        return self._version


class FileSystemCatalog(StaticCatalog):
    """Catalog loaded from ``template.yaml`` descriptors under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        if not self.root.is_dir():
            raise CatalogError(f"Template directory not found: {self.root}")

        templates = [
            load_descriptor(path) for path in sorted(self.root.rglob(DESCRIPTOR_FILE))
        ]

        version_file = self.root / VERSION_FILE
        version = DEFAULT_VERSION
        if version_file.is_file():
            version = version_file.read_text(encoding="utf-8").strip() or DEFAULT_VERSION

        super().__init__(templates, version=version)


def load_descriptor(path: str | Path) -> TemplateDescriptor:
    """Parse one ``template.yaml`` file into a ``TemplateDescriptor``.

    Raises:
        CatalogError: If the file is not valid YAML or misses required keys.
    """
    descriptor_path = Path(path)
    try:
        raw = yaml.safe_load(descriptor_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid YAML in {descriptor_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise CatalogError(f"Descriptor {descriptor_path} must be a mapping")

    data: dict[str, Any] = dict(raw)
    # "type" reads better in YAML than "template_type".
    if "type" in data:
        data["template_type"] = data.pop("type")
    data["source_dir"] = descriptor_path.parent / CONTENT_DIR

    try:
        data["post_actions"] = [PostActionSpec(**spec) for spec in data.get("post_actions") or []]
        return TemplateDescriptor(**data)
    except (ValidationError, TypeError) as exc:
        raise CatalogError(f"Invalid descriptor {descriptor_path}: {exc}") from exc
