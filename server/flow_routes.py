"""API routes for flow definition storage."""

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from flowgraph.models.flow_definition import (
    FlowConfig,
    FlowDefinition,
    FlowRecord,
    FlowSummary,
    StageDefinition,
)
from flowgraph.utils.identifiers import generate_flow_id, utc_timestamp
from server.flow_db import (
    delete_flow as db_delete_flow,
    find_flow_id_by_slug,
    get_flow as db_get_flow,
    get_flow_row,
    insert_field_renames,
    insert_flow,
    list_field_renames,
    list_flows as db_list_flows,
    update_flow,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STARTER_STAGE = "intro"


# --- Request/Response Models ---


class CreateFlowRequest(BaseModel):
    """Request body for creating a new flow."""

    name: str
    slug: str
    description: str = ""


class SaveFlowRequest(FlowRecord):
    """A full flow record plus the rename audit collected while editing."""

    model_config = {"populate_by_name": True}

    field_renames: dict[str, str] | None = Field(default=None, alias="fieldRenames")


# --- Helper Functions ---


def check_definition(definition: FlowDefinition) -> str | None:
    """Referential checks a definition must pass before it is stored.

    Shape is already enforced by the models; this catches names that point
    nowhere. Returns the first problem found, or None.
    """
    stages = definition.stages
    initial = definition.config.initial_stage
    if not initial:
        return "config.initialStage must be set"
    if initial not in stages:
        return f"Initial stage '{initial}' not found in stages"

    for stage_slug, stage in stages.items():
        for field_slug in stage.fields_to_collect:
            if field_slug not in definition.fields:
                return f"Stage '{stage_slug}' references unknown field '{field_slug}'"

        if stage.action is not None:
            if not stage.action.tool_name.strip():
                return f"Stage '{stage_slug}' action.toolName must be a non-empty string"
            if stage.action.condition is not None and not stage.action.condition.strip():
                return f"Stage '{stage_slug}' action.condition must be a non-empty string when provided"

        next_stage = stage.next_stage
        if isinstance(next_stage, str):
            if next_stage not in stages:
                return f"Stage '{stage_slug}' nextStage '{next_stage}' not found"
        elif next_stage is not None:
            for i, rule in enumerate(next_stage.conditional):
                if not rule.condition.strip():
                    return f"Stage '{stage_slug}' conditional[{i}].condition must be a non-empty string"
                if rule.if_true not in stages:
                    return f"Stage '{stage_slug}' conditional[{i}].ifTrue '{rule.if_true}' not found"
                if rule.if_false is not None and rule.if_false not in stages:
                    return f"Stage '{stage_slug}' conditional[{i}].ifFalse '{rule.if_false}' not found"
            if next_stage.fallback not in stages:
                return f"Stage '{stage_slug}' nextStage.fallback '{next_stage.fallback}' not found"

    return None


def _starter_definition() -> FlowDefinition:
    return FlowDefinition(
        stages={STARTER_STAGE: StageDefinition(description="Intro", fields_to_collect=[])},
        fields={},
        config=FlowConfig(initial_stage=STARTER_STAGE),
    )


# --- API Endpoints ---


@router.get("/flows")
def list_flows() -> list[FlowSummary]:
    """list all stored flows, most recently updated first."""
    return [
        FlowSummary(
            id=row.id,
            name=row.name,
            slug=row.slug,
            description=row.description,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
        for row in db_list_flows()
    ]


@router.post("/flows", status_code=201, response_model_exclude_none=True)
def create_flow(request: CreateFlowRequest) -> FlowRecord:
    """create a flow with a one-stage starter definition."""
    if find_flow_id_by_slug(request.slug):
        raise HTTPException(status_code=409, detail=f"Flow already exists: {request.slug}")

    flow = FlowRecord(
        id=generate_flow_id(),
        name=request.name,
        slug=request.slug,
        description=request.description,
        version=1,
        definition=_starter_definition(),
    )
    insert_flow(flow, utc_timestamp())
    logger.info("created flow %s (%s)", flow.id, flow.slug)
    return flow


@router.get("/flows/{flow_id}", response_model_exclude_none=True)
def get_flow(flow_id: str) -> FlowRecord:
    """get a flow with its full definition."""
    flow = db_get_flow(flow_id)
    if not flow:
        raise HTTPException(status_code=404, detail=f"Flow not found: {flow_id}")
    return flow


@router.put("/flows/{flow_id}", response_model_exclude_none=True)
def save_flow(flow_id: str, request: SaveFlowRequest) -> FlowRecord:
    """replace a flow's definition.

    The request carries the version the editor loaded. A mismatch means
    somebody else saved in between, answered with 409 instead of silently
    overwriting their work.
    """
    if request.id != flow_id:
        raise HTTPException(status_code=400, detail="Flow id in body does not match the URL")

    current = get_flow_row(flow_id)
    if not current:
        raise HTTPException(status_code=404, detail=f"Flow not found: {flow_id}")

    error = check_definition(request.definition)
    if error:
        raise HTTPException(status_code=400, detail=error)

    if current.version != request.version:
        logger.info(
            "rejected stale save of flow %s: stored v%d, request v%d",
            flow_id, current.version, request.version,
        )
        raise HTTPException(
            status_code=409,
            detail=f"Flow was modified (stored version {current.version}, got {request.version})",
        )

    owner = find_flow_id_by_slug(request.slug)
    if owner and owner != flow_id:
        raise HTTPException(status_code=409, detail="Another flow with this slug exists")

    flow = FlowRecord(
        id=flow_id,
        name=request.name,
        slug=request.slug,
        description=request.description,
        version=request.version + 1,
        definition=request.definition,
    )
    now = utc_timestamp()
    if not update_flow(flow, expected_version=request.version, now=now):
        raise HTTPException(status_code=409, detail="Flow was modified concurrently")

    if request.field_renames:
        insert_field_renames(flow_id, flow.version, request.field_renames, now)

    logger.info("saved flow %s v%d", flow_id, flow.version)
    return flow


@router.delete("/flows/{flow_id}")
def delete_flow(flow_id: str) -> dict:
    """delete a flow and its rename audit."""
    if not get_flow_row(flow_id):
        raise HTTPException(status_code=404, detail=f"Flow not found: {flow_id}")
    db_delete_flow(flow_id)
    return {"deleted": flow_id}


@router.get("/flows/{flow_id}/field-renames")
def get_field_renames(flow_id: str) -> list[dict]:
    """list field renames stored with previous saves, oldest first."""
    if not get_flow_row(flow_id):
        raise HTTPException(status_code=404, detail=f"Flow not found: {flow_id}")
    return list_field_renames(flow_id)
