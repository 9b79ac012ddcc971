"""
Bonafide Portal — Certificate request routes

Every route needs a bearer token; role checks live in the workflow so they
apply no matter who calls it.
"""
from fastapi import APIRouter, Depends, status

from bonafide_portal.api.deps import get_current_identity, get_workflow
from bonafide_portal.schemas.auth import Identity
from bonafide_portal.schemas.certificate import (
    CertificateRequestCreate,
    RequestListResponse,
    RequestResponse,
    StatusUpdate,
    SubmitResponse,
)
from bonafide_portal.services.workflow import CertificateRequestWorkflow

router = APIRouter(tags=["certificates"])


@router.post("/certificate-request", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: CertificateRequestCreate,
    caller: Identity = Depends(get_current_identity),
    workflow: CertificateRequestWorkflow = Depends(get_workflow),
):
    request = await workflow.submit(caller, payload)
    return SubmitResponse(message="Certificate request submitted successfully", request_id=request.id)


@router.get("/certificate-requests", response_model=RequestListResponse, response_model_exclude_none=True)
async def list_requests(
    caller: Identity = Depends(get_current_identity),
    workflow: CertificateRequestWorkflow = Depends(get_workflow),
):
    """All requests, newest first (admin)."""
    return RequestListResponse(requests=await workflow.list_all(caller))


@router.get(
    "/certificate-requests/student", response_model=RequestListResponse, response_model_exclude_none=True
)
async def list_own_requests(
    caller: Identity = Depends(get_current_identity),
    workflow: CertificateRequestWorkflow = Depends(get_workflow),
):
    return RequestListResponse(requests=await workflow.list_for_student(caller))


@router.get("/certificate-request/{request_id}", response_model=RequestResponse, response_model_exclude_none=True)
async def get_request(
    request_id: str,
    caller: Identity = Depends(get_current_identity),
    workflow: CertificateRequestWorkflow = Depends(get_workflow),
):
    """One request: its owner or any admin. Anyone else gets 404."""
    request = await workflow.get(caller, request_id)
    return RequestResponse(message="Request found", request=request)


@router.put("/certificate-request/{request_id}", response_model=RequestResponse, response_model_exclude_none=True)
async def update_request_status(
    request_id: str,
    payload: StatusUpdate,
    caller: Identity = Depends(get_current_identity),
    workflow: CertificateRequestWorkflow = Depends(get_workflow),
):
    """Approve or reject a pending request (admin). Approval assigns the certificate number."""
    request = await workflow.set_status(caller, request_id, payload.status)
    return RequestResponse(message=f"Request {request.status.value} successfully", request=request)
