"""
API router for upload-to-results workflows.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, File, HTTPException, Path, UploadFile, status

from reforest.api.dependencies import WorkflowRegistryDep
from reforest.api.v1.models.requests import LocationRequest, RecalculateRequest
from reforest.api.v1.models.responses import WorkflowResponse
from reforest.infrastructure.image_analysis import UploadedImage
from reforest.services.application.workflow import WorkflowOrchestrator, WorkflowRegistry


router = APIRouter(
    prefix="/workflows",
    tags=["workflows"],
)

WorkflowId = Annotated[str, Path(description="Workflow identifier")]


def _lookup(registry: WorkflowRegistry, workflow_id: str) -> WorkflowOrchestrator:
    workflow = registry.get(workflow_id)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workflow '{workflow_id}' not found",
        )
    return workflow


@router.post(
    "",
    response_model=WorkflowResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow",
)
async def create_workflow(registry: WorkflowRegistryDep) -> WorkflowResponse:
    workflow = registry.create()
    return WorkflowResponse.from_state(workflow.state)


@router.get(
    "/{workflow_id}",
    response_model=WorkflowResponse,
    summary="Get workflow progress",
)
async def get_workflow(workflow_id: WorkflowId, registry: WorkflowRegistryDep) -> WorkflowResponse:
    return WorkflowResponse.from_state(_lookup(registry, workflow_id).state)


@router.post(
    "/{workflow_id}/image",
    response_model=WorkflowResponse,
    summary="Upload a site image",
    description="""
    Select an image and drive the workflow until it either completes or
    suspends in `awaiting-location` because the image carries no GPS data.

    Validation problems and collaborator failures are reported in the
    `error` field together with a suggested next action.
    """,
)
async def upload_image(
    workflow_id: WorkflowId,
    registry: WorkflowRegistryDep,
    file: UploadFile = File(..., description="JPEG, PNG or HEIC photo of the site"),
) -> WorkflowResponse:
    workflow = _lookup(registry, workflow_id)
    image = UploadedImage(
        filename=file.filename or "upload",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    return WorkflowResponse.from_state(await workflow.select_image(image))


@router.post(
    "/{workflow_id}/location",
    response_model=WorkflowResponse,
    summary="Supply a location",
    description="Resume a workflow waiting in `awaiting-location` without re-processing the image.",
)
async def supply_location(
    workflow_id: WorkflowId,
    request: LocationRequest,
    registry: WorkflowRegistryDep,
) -> WorkflowResponse:
    workflow = _lookup(registry, workflow_id)
    if request.use_default:
        state = await workflow.use_default_location()
    else:
        state = await workflow.supply_location(request.latitude, request.longitude)
    return WorkflowResponse.from_state(state)


@router.post(
    "/{workflow_id}/retry",
    response_model=WorkflowResponse,
    summary="Retry after a recoverable failure",
)
async def retry_workflow(workflow_id: WorkflowId, registry: WorkflowRegistryDep) -> WorkflowResponse:
    return WorkflowResponse.from_state(await _lookup(registry, workflow_id).retry())


@router.post(
    "/{workflow_id}/recalculate",
    response_model=WorkflowResponse,
    summary="Recalculate recommendations from the held context",
)
async def recalculate_workflow(
    workflow_id: WorkflowId,
    registry: WorkflowRegistryDep,
    request: Optional[RecalculateRequest] = None,
) -> WorkflowResponse:
    use_reasoning = request.use_reasoning if request else None
    state = await _lookup(registry, workflow_id).recalculate(use_reasoning)
    return WorkflowResponse.from_state(state)


@router.post(
    "/{workflow_id}/reset",
    response_model=WorkflowResponse,
    summary="Reset a workflow to upload",
)
async def reset_workflow(workflow_id: WorkflowId, registry: WorkflowRegistryDep) -> WorkflowResponse:
    return WorkflowResponse.from_state(_lookup(registry, workflow_id).reset())


@router.delete(
    "/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Tear down a workflow",
)
async def delete_workflow(workflow_id: WorkflowId, registry: WorkflowRegistryDep) -> None:
    if not registry.remove(workflow_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workflow '{workflow_id}' not found",
        )
