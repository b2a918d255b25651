"""Flow definition models for the authoring layer.

A flow definition is a map of named stages plus the fields those stages
collect. The JSON wire format is camelCase (``fieldsToCollect``, ``nextStage``),
models accept either the alias or the python field name.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class FieldType(str, Enum):
    """Types of values a field can hold."""

    string = "string"
    boolean = "boolean"
    number = "number"


class FieldDefinition(BaseModel):
    """A named, typed datum that stages can ask to collect."""

    model_config = {"populate_by_name": True}

    type: FieldType = FieldType.string
    description: str = ""
    sensitive: bool | None = None
    priority: int | None = None  # lower = asked earlier
    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")
    pattern: str | None = None
    enum: list[str] | None = None


class StageAction(BaseModel):
    """Tool invoked when a stage is reached."""

    # the runtime reads extra keys (onErrorCode, allowReExecutionOnError, ...)
    model_config = {"populate_by_name": True, "extra": "allow"}

    tool_name: str = Field(alias="toolName")
    condition: str | None = None


class ConditionalItem(BaseModel):
    """One branch rule of a conditional transition."""

    model_config = {"populate_by_name": True}

    condition: str
    if_true: str = Field(alias="ifTrue")
    if_false: str | None = Field(default=None, alias="ifFalse")


class NextStageConditional(BaseModel):
    """Ordered branch rules plus the stage used when none applies."""

    conditional: list[ConditionalItem] = Field(default_factory=list)
    fallback: str


class StageDefinition(BaseModel):
    """A single stage of a flow: what to ask, what to run, where to go next."""

    model_config = {"populate_by_name": True}

    name: str | None = None
    description: str = ""
    prompt: str | None = None
    fields_to_collect: list[str] = Field(default_factory=list, alias="fieldsToCollect")
    action: StageAction | None = None
    # a plain slug is a fixed transition; None or "" marks a final stage
    next_stage: str | NextStageConditional | None = Field(default=None, alias="nextStage")

    @property
    def is_final(self) -> bool:
        return not self.next_stage


class FlowUiConfig(BaseModel):
    """Admin UI preferences stored with the flow."""

    model_config = {"populate_by_name": True}

    fields_sort: Literal["none", "priorityAsc"] | None = Field(default=None, alias="fieldsSort")


class FlowConfig(BaseModel):
    """Flow-level configuration."""

    model_config = {"populate_by_name": True}

    initial_stage: str | None = Field(default=None, alias="initialStage")
    ui: FlowUiConfig | None = None


class FlowDefinition(BaseModel):
    """The editable graph: stages, fields and config."""

    stages: dict[str, StageDefinition] = Field(default_factory=dict)
    fields: dict[str, FieldDefinition] = Field(default_factory=dict)
    config: FlowConfig = Field(default_factory=FlowConfig)

    def missing_field_refs(self) -> dict[str, list[str]]:
        """Map each stage to the field slugs it collects that have no definition.

        Stages without dangling references are left out. Order follows the
        stage map and each stage's ``fields_to_collect``.
        """
        missing: dict[str, list[str]] = {}
        for stage_slug, stage in self.stages.items():
            refs = [f for f in stage.fields_to_collect if f not in self.fields]
            if refs:
                missing[stage_slug] = refs
        return missing


class FlowSummary(BaseModel):
    """Flow metadata without the definition, used for listings."""

    id: str
    name: str
    slug: str
    description: str = ""
    version: int = 1
    created_at: str | None = None
    updated_at: str | None = None


class FlowRecord(BaseModel):
    """A stored flow: identity, version stamp and definition.

    ``version`` is the optimistic-concurrency stamp. The server bumps it on
    every successful write and rejects writes carrying a stale value.
    """

    id: str
    name: str
    slug: str
    description: str = ""
    version: int = 1
    definition: FlowDefinition = Field(default_factory=FlowDefinition)

    def to_wire(self) -> dict:
        """Serialize to the camelCase JSON shape the API exchanges."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
