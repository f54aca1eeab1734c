"""Record endpoints for inquiries, announcements and schools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from starlette.datastructures import UploadFile

from campus_site.api.models import InquiryPayload
from campus_site.domain.errors import ValidationError
from campus_site.domain.records import ANNOUNCEMENTS, INQUIRIES, SCHOOLS, CollectionSpec
from campus_site.services.uploads import ImageUpload

if TYPE_CHECKING:
    from campus_site.containers import AppContainer
    from campus_site.services.records import RecordService


def _service(request: Request, collection: CollectionSpec) -> RecordService:
    container: AppContainer = request.app.state.container
    return container.records(collection.name)


async def _read_write_request(
    request: Request,
) -> tuple[dict[str, object], ImageUpload | None, str | None]:
    """Read fields, the optional ``image`` file and the client token.

    Multipart and urlencoded forms are accepted, as is a JSON object for
    updates that carry no file.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("Request body is not valid JSON") from exc
        fields = dict(body) if isinstance(body, dict) else {}
        token = fields.pop("clientToken", None)
        return fields, None, token if isinstance(token, str) else None

    form = await request.form()
    fields = {}
    image: ImageUpload | None = None
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key != "image" or not value.filename:
                continue
            image = ImageUpload(
                filename=value.filename,
                content_type=value.content_type or "",
                content=await value.read(),
            )
        else:
            fields[key] = value
    token = fields.pop("clientToken", None)
    return fields, image, token if isinstance(token, str) else None


def build_record_router(collection: CollectionSpec) -> APIRouter:
    """Create CRUD routes for an image-bearing collection."""
    router = APIRouter(prefix=f"/api/{collection.name}", tags=[collection.name])

    @router.get("")
    async def list_records(request: Request) -> dict[str, object]:
        """Return every record, newest first."""
        records = await _service(request, collection).list_records()
        return {"success": True, "data": records}

    @router.get("/{record_id}")
    async def get_record(record_id: str, request: Request) -> dict[str, object]:
        """Return one record."""
        return {
            "success": True,
            "data": await _service(request, collection).get_record(record_id),
        }

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_record(request: Request) -> dict[str, object]:
        """Create a record from a multipart form with an ``image`` file."""
        fields, image, token = await _read_write_request(request)
        data = await _service(request, collection).create_record(
            fields, image=image, client_token=token
        )
        return {"success": True, "data": data}

    @router.put("/{record_id}")
    async def update_record(record_id: str, request: Request) -> dict[str, object]:
        """Update a record; the image is optional."""
        fields, image, _ = await _read_write_request(request)
        data = await _service(request, collection).update_record(
            record_id, fields, image=image
        )
        return {"success": True, "data": data}

    @router.delete("/{record_id}")
    async def delete_record(record_id: str, request: Request) -> dict[str, object]:
        """Delete a record."""
        data = await _service(request, collection).delete_record(record_id)
        return {"success": True, "data": data}

    return router


inquiries_router = APIRouter(prefix="/api/inquiries", tags=["inquiries"])


@inquiries_router.post("", status_code=status.HTTP_201_CREATED)
async def create_inquiry(
    payload: InquiryPayload, request: Request
) -> dict[str, object]:
    """Save a contact form submission."""
    data = await _service(request, INQUIRIES).create_record(
        payload.fields(), client_token=payload.client_token
    )
    return {
        "success": True,
        "message": "Inquiry saved successfully!",
        "id": data["id"],
        "data": data,
    }


@inquiries_router.get("")
async def list_inquiries(request: Request) -> dict[str, object]:
    """Return all inquiries, newest first."""
    records = await _service(request, INQUIRIES).list_records()
    return {"success": True, "data": records}


@inquiries_router.get("/{record_id}")
async def get_inquiry(record_id: str, request: Request) -> dict[str, object]:
    """Return one inquiry."""
    record = await _service(request, INQUIRIES).get_record(record_id)
    return {"success": True, "data": record}


@inquiries_router.delete("/{record_id}")
async def delete_inquiry(record_id: str, request: Request) -> dict[str, object]:
    """Delete an inquiry."""
    data = await _service(request, INQUIRIES).delete_record(record_id)
    return {"success": True, "data": data}


announcements_router = build_record_router(ANNOUNCEMENTS)
schools_router = build_record_router(SCHOOLS)
