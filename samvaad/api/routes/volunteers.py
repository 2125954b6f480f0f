# samvaad/api/routes/volunteers.py

from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PayloadError
from starlette.datastructures import UploadFile

from samvaad.core import state
from samvaad.core.errors import DuplicateApplication
from samvaad.models.models import Volunteer, VolunteerApplication, VolunteerApplicationRequest

router = APIRouter(prefix="/api/volunteers", tags=["Volunteers"])

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")

# ============================================================================
# VOLUNTEER INTAKE & DIRECTORY
# ============================================================================

async def _read_application(request: Request) -> VolunteerApplicationRequest:
    """
    Parse the intake form from either a JSON body or form fields.

    The web form posts multipart data with an optional ``resumeFile``. Only
    the uploaded file's name is kept, as ``resumePath``; the file itself is
    not stored.

    Raises:
        RequestValidationError: malformed body or invalid fields (422)
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        data: Dict[str, Any] = {k: v for k, v in form.items() if not isinstance(v, UploadFile)}
        data.pop("resumeFile", None)
        resume = form.get("resumeFile")
        if isinstance(resume, UploadFile) and resume.filename:
            data.setdefault("resumePath", resume.filename)
    else:
        try:
            data = await request.json()
        except ValueError:
            raise RequestValidationError(
                [{"type": "json_invalid", "loc": ("body",), "msg": "Body is not valid JSON", "input": None}]
            )

    try:
        return VolunteerApplicationRequest.model_validate(data)
    except PayloadError as e:
        raise RequestValidationError(e.errors(include_url=False))


@router.post("/apply", status_code=status.HTTP_201_CREATED)
async def submit_application(request: Request):
    """
    Submit a volunteer application.

    Field validation (required fields, email format, age 16+, gender) is done
    by the request model and answered with 422.

    Raises:
        HTTPException: 409 if a pending/accepted application uses the email
    """
    application_request = await _read_application(request)
    try:
        application = state.volunteer_manager.submit(application_request)
    except DuplicateApplication as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "message": "Application submitted successfully!",
        "applicationId": application.id,
    }


@router.get("", response_model=List[VolunteerApplication])
async def list_applications():
    """All applications, newest first."""
    return state.volunteer_manager.list_newest_first()


@router.get("/directory", response_model=List[Volunteer])
async def directory():
    """Volunteers a user can open a chat with."""
    return state.volunteer_manager.directory()
