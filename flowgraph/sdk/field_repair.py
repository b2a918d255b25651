"""Save-time repair of dangling field references.

The storage API refuses definitions whose stages collect undefined fields.
Before saving, an editor can create stub definitions for those references
instead of dropping them from the stages.
"""

import logging

from flowgraph.models.flow_definition import FieldDefinition, FieldType, FlowDefinition

logger = logging.getLogger(__name__)


def ensure_field_definitions(definition: FlowDefinition) -> list[str]:
    """Add a string-typed stub for every undefined field a stage collects.

    Mutates ``definition`` in place and returns the created slugs in the
    order they were first referenced.
    """
    created: list[str] = []
    for refs in definition.missing_field_refs().values():
        for slug in refs:
            if slug in definition.fields:
                continue
            definition.fields[slug] = FieldDefinition(type=FieldType.string, description="")
            created.append(slug)

    if created:
        logger.info("created stub field definitions: %s", ", ".join(created))
    return created
