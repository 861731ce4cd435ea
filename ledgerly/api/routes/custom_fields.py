"""
Custom field definition endpoints (Pro feature).

Provides:
- GET /api/custom-fields — List the user's field definitions
- POST /api/custom-fields — Create a field definition
- PATCH /api/custom-fields — Update a field definition
- DELETE /api/custom-fields — Delete a field definition

Every endpoint requires authentication and the ``custom_fields`` plan
feature. Updates and deletes match on (id, user_id): another user's field
is indistinguishable from a missing one.
"""

import logging
import re
import uuid

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.api.dependencies import require_feature
from ledgerly.core.exceptions import ResourceNotFoundError, ValidationError
from ledgerly.db.database import get_db
from ledgerly.db.models import CustomFieldDefinition
from ledgerly.db.repositories.custom_field_repo import CustomFieldRepository
from ledgerly.middleware.rate_limiter import RATE_LIMIT_CONFIGS, rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/custom-fields", tags=["Custom Fields"])

FIELD_TYPES = frozenset({"text", "number", "date", "select", "textarea", "checkbox"})

_require_custom_fields = require_feature("custom_fields")
_write_limit = rate_limit(RATE_LIMIT_CONFIGS["write"])


# ─── Request Schemas ─────────────────────────────────────────


class CreateFieldRequest(BaseModel):
    name: str | None = None
    field_type: str | None = None
    options: list[str] | None = None
    is_required: bool = False
    sort_order: int = 0


class UpdateFieldRequest(BaseModel):
    id: uuid.UUID
    name: str | None = None
    options: list[str] | None = None
    is_required: bool | None = None
    sort_order: int | None = None


class DeleteFieldRequest(BaseModel):
    id: uuid.UUID


# ─── Helpers ─────────────────────────────────────────────────


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumerics to ``_``, trim edge underscores."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def _field_to_dict(field: CustomFieldDefinition) -> dict:
    return {
        "id": str(field.id),
        "name": field.name,
        "slug": field.slug,
        "field_type": field.field_type,
        "options": field.options or [],
        "is_required": field.is_required,
        "sort_order": field.sort_order,
        "created_at": field.created_at.isoformat() if field.created_at else None,
    }


# ─── Endpoints ───────────────────────────────────────────────


@router.get("", summary="List custom field definitions")
async def list_fields(
    user_id: uuid.UUID = Depends(_require_custom_fields),
    db: AsyncSession = Depends(get_db),
):
    repo = CustomFieldRepository(db)
    fields = await repo.find_by_user(user_id)
    return {"fields": [_field_to_dict(f) for f in fields]}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a custom field definition",
    dependencies=[Depends(_write_limit)],
)
async def create_field(
    body: CreateFieldRequest,
    user_id: uuid.UUID = Depends(_require_custom_fields),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a field definition. The slug is derived from the name and must
    be unique among the user's fields.
    """
    if not body.name or not body.name.strip():
        raise ValidationError("Field name is required.")
    if not body.field_type:
        raise ValidationError("Field type is required.")
    if body.field_type not in FIELD_TYPES:
        raise ValidationError("Invalid field type.")

    slug = slugify(body.name)
    if not slug:
        raise ValidationError("Field name must contain letters or digits.")

    repo = CustomFieldRepository(db)
    if await repo.slug_exists(user_id, slug):
        raise ValidationError("A field with this name already exists")

    try:
        field = await repo.create(
            user_id=user_id,
            name=body.name.strip(),
            slug=slug,
            field_type=body.field_type,
            options=body.options or [],
            is_required=body.is_required,
            sort_order=body.sort_order,
        )
    except IntegrityError:
        # A concurrent create won the (user_id, slug) unique constraint
        raise ValidationError("A field with this name already exists")
    logger.info(f"Created custom field {field.id} ({slug}) for user {user_id}")
    return {"field": _field_to_dict(field)}


@router.patch(
    "",
    summary="Update a custom field definition",
    dependencies=[Depends(_write_limit)],
)
async def update_field(
    body: UpdateFieldRequest,
    user_id: uuid.UUID = Depends(_require_custom_fields),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True, exclude={"id"})
    if "name" in updates:
        if not updates["name"] or not updates["name"].strip():
            raise ValidationError("Field name cannot be empty.")
        updates["name"] = updates["name"].strip()

    repo = CustomFieldRepository(db)
    field = await repo.update_owned(body.id, user_id, **updates)
    if field is None:
        raise ResourceNotFoundError("Field not found or access denied.")
    return {"field": _field_to_dict(field)}


@router.delete(
    "",
    summary="Delete a custom field definition",
    dependencies=[Depends(_write_limit)],
)
async def delete_field(
    body: DeleteFieldRequest = Body(...),
    user_id: uuid.UUID = Depends(_require_custom_fields),
    db: AsyncSession = Depends(get_db),
):
    repo = CustomFieldRepository(db)
    if not await repo.delete_owned(body.id, user_id):
        raise ResourceNotFoundError("Field not found or access denied.")
    return {"success": True}
