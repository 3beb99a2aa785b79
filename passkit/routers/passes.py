"""
Pass Router

Create, refresh, update, revoke and expire Apple Wallet passes by serial number.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from passkit.db import get_db
from passkit.dependencies import get_pass_service
from passkit.models.pass_record import PassRecord
from passkit.schemas.pass_request import PassRequest
from passkit.services.pass_archive import PKPASS_MEDIA_TYPE
from passkit.services.pass_service import PassGenerationResult, PassService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pass", tags=["passes"])

SERIAL_NUMBER_HEADER = "X-Pass-Serial-Number"
PASS_VERSION_HEADER = "X-Pass-Version"


class PassStatusResponse(BaseModel):
    """Result of a status-only transition"""
    message: str
    serial_number: str
    status: str
    version: int


def _pkpass_response(result: PassGenerationResult) -> Response:
    return Response(
        content=result.data,
        media_type=PKPASS_MEDIA_TYPE,
        headers={
            "Content-Disposition": 'attachment; filename="pass.pkpass"',
            SERIAL_NUMBER_HEADER: result.serial_number,
            PASS_VERSION_HEADER: str(result.version),
        },
    )


def _status_response(message: str, record: PassRecord) -> PassStatusResponse:
    return PassStatusResponse(
        message=message,
        serial_number=record.serial_number,
        status=record.status.value,
        version=record.version,
    )


@router.get("/health")
def health():
    return {"status": "ok", "message": "PassKit backend is running"}


@router.get("/generate")
def generate_default_pass(
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    """Generate a Generic pass from the default template with a new serial number."""
    return _pkpass_response(service.generate(db))


@router.api_route("", methods=["GET", "POST"])
def create_pass(
    pass_type: Optional[str] = Query(None, alias="type", description="Pass type code: bp, cp, ep, sp, gp"),
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    """
    Create a pass of the given type with a new serial number.

    GET is accepted so a browser link can download a pass directly.
    """
    request = PassRequest.for_type_code(pass_type)
    return _pkpass_response(service.generate(db, request=request))


@router.api_route("/{serial_number}", methods=["GET", "POST"])
def get_or_create_pass(
    serial_number: str,
    pass_type: Optional[str] = Query(None, alias="type"),
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    """
    Download the current version of a pass.

    If no pass exists under this serial number, one is generated from the
    default template of ``type``.
    """
    request = PassRequest.for_type_code(pass_type)
    return _pkpass_response(service.refresh_or_generate(db, serial_number, request))


@router.put("/{serial_number}")
def update_pass(
    serial_number: str,
    request: Optional[PassRequest] = Body(default=None),
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    """
    Update an existing pass.

    Without a body the stored pass is re-signed unchanged; with a body the
    document is rebuilt from it and devices are notified.
    """
    if request is None:
        result = service.refresh(db, serial_number)
    else:
        result = service.update_with_document(db, serial_number, request)
    return _pkpass_response(result)


@router.put("/{serial_number}/details")
def update_pass_details(
    serial_number: str,
    http_request: Request,
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    """
    Update field values from query parameters.

    Example: /api/pass/{serial_number}/details?seat=1A&status=expired
    """
    updates = dict(http_request.query_params)
    return _pkpass_response(service.update_with_fields(db, serial_number, updates))


@router.delete("/{serial_number}", response_model=PassStatusResponse)
def revoke_pass(
    serial_number: str,
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    record = service.revoke(db, serial_number)
    return _status_response("Pass revoked successfully", record)


@router.post("/{serial_number}/expire", response_model=PassStatusResponse)
def expire_pass(
    serial_number: str,
    db: Session = Depends(get_db),
    service: PassService = Depends(get_pass_service),
):
    record = service.expire(db, serial_number)
    return _status_response("Pass expired successfully", record)
