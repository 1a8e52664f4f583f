"""Selection composer.

Turns the user's wizard selection into the ordered generation units the
orchestrator materializes:

1. the project unit (placeholder when the catalog has no matching project
   template),
2. pages then features in selection order, each preceded by the templates it
   depends on that the user did not select themselves.

Composition has no side effects and is deterministic for a given catalog.
A catalog lookup that fails is raised as ``CompositionError``.
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional

from template_wizard.catalog import TemplateCatalog
from template_wizard.errors import CompositionError
from template_wizard.models import GenerationUnit, Selection, TemplateDescriptor
from template_wizard.utils import to_pascal


def compose(selection: Selection, catalog: TemplateCatalog) -> Iterator[GenerationUnit]:
    """Yield the generation units for *selection*, in generation order."""
    project_template = _lookup(catalog.find_project, selection.project_type, selection.framework)
    yield _make_unit(selection.project_name, project_template, selection)

    chosen = [*selection.pages, *selection.features]
    selected_ids = {item.template_id for item in chosen}
    seen_dependencies: set[str] = set()

    for item in chosen:
        template = _lookup(catalog.get, item.template_id)
        if template is not None:
            yield from _dependency_units(
                template, catalog, selection, selected_ids, seen_dependencies
            )
        yield _make_unit(item.name, template, selection)


def build_parameters(selection: Selection, unit_name: str) -> dict[str, str]:
    """Parameters every template receives."""
    return {
        "project_name": selection.project_name,
        "project_type": selection.project_type,
        "framework": selection.framework,
        "item_name": unit_name,
        "root_namespace": to_pascal(selection.project_name),
    }


def _lookup(
    find: Callable[..., Optional[TemplateDescriptor]], *key: str
) -> Optional[TemplateDescriptor]:
    try:
        return find(*key)
    except Exception as exc:
        raise CompositionError(f"Cannot resolve template '{'/'.join(key)}': {exc}") from exc


def _make_unit(
    name: str, template: Optional[TemplateDescriptor], selection: Selection
) -> GenerationUnit:
    return GenerationUnit(
        name=name,
        template=template,
        parameters=build_parameters(selection, name),
    )


def _dependency_units(
    template: TemplateDescriptor,
    catalog: TemplateCatalog,
    selection: Selection,
    selected_ids: set[str],
    seen: set[str],
) -> Iterator[GenerationUnit]:
    """Yield units for the unselected dependencies of *template*, depth first.

    Each dependency is added once per selection.  Unknown dependency ids
    become placeholders named after the id.
    """
    for dependency_id in template.dependencies:
        if dependency_id in selected_ids or dependency_id in seen:
            continue
        seen.add(dependency_id)

        dependency = _lookup(catalog.get, dependency_id)
        if dependency is None:
            yield _make_unit(dependency_id, None, selection)
            continue

        yield from _dependency_units(dependency, catalog, selection, selected_ids, seen)
        yield _make_unit(dependency.default_name or dependency.name, dependency, selection)
