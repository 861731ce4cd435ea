"""
User profile endpoints (shop details and onboarding).

Provides:
- GET /api/user-profiles — The caller's profile, or null before onboarding
- POST /api/user-profiles — Create the caller's profile
- PATCH /api/user-profiles — Update the caller's profile
- POST /api/user-profiles/onboarding — Save onboarding choices and mark it done

The profile id is the authenticated user's id, so a caller can only ever
read or write its own profile.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerly.core.exceptions import ResourceNotFoundError, ValidationError
from ledgerly.db.database import get_db
from ledgerly.db.models import UserProfile
from ledgerly.db.repositories.user_profile_repo import UserProfileRepository
from ledgerly.middleware.auth_middleware import get_current_user_id
from ledgerly.middleware.rate_limiter import RATE_LIMIT_CONFIGS, rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user-profiles", tags=["Profiles"])

_write_limit = rate_limit(RATE_LIMIT_CONFIGS["write"])

DEFAULT_CURRENCY = "TRY"
DEFAULT_LANGUAGE = "en"


# ─── Request Schemas ─────────────────────────────────────────


class ProfileFields(BaseModel):
    full_name: str | None = None
    shop_name: str | None = None
    phone: str | None = None
    address: str | None = None
    currency: str | None = None
    language: str | None = None
    industry: str | None = None
    logo_url: str | None = None
    onboarding_completed: bool | None = None


class OnboardingRequest(BaseModel):
    currency: str | None = None
    language: str | None = None
    industry: str | None = None


# ─── Helpers ─────────────────────────────────────────────────


def _normalize_currency(value: str) -> str:
    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError("Currency must be a 3-letter ISO 4217 code.")
    return code


def _normalize_language(value: str) -> str:
    language = value.strip()
    if not 2 <= len(language) <= 10:
        raise ValidationError("Invalid language code.")
    return language


def _clean_fields(fields: dict) -> dict:
    """Validate the supplied fields; blank optional text becomes None."""
    cleaned = {}
    for key, value in fields.items():
        if key == "currency":
            if value is None:
                raise ValidationError("Currency cannot be empty.")
            value = _normalize_currency(value)
        elif key == "language":
            if value is None:
                raise ValidationError("Language cannot be empty.")
            value = _normalize_language(value)
        elif key == "onboarding_completed":
            value = bool(value)
        elif isinstance(value, str):
            value = value.strip() or None
        cleaned[key] = value
    return cleaned


def profile_to_dict(profile: UserProfile) -> dict:
    return {
        "id": str(profile.id),
        "full_name": profile.full_name,
        "shop_name": profile.shop_name,
        "phone": profile.phone,
        "address": profile.address,
        "currency": profile.currency,
        "language": profile.language,
        "industry": profile.industry,
        "logo_url": profile.logo_url,
        "onboarding_completed": profile.onboarding_completed,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }


# ─── Endpoints ───────────────────────────────────────────────


@router.get("", summary="Get the current user's profile")
async def get_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    profile = await UserProfileRepository(db).get(user_id)
    return {"profile": profile_to_dict(profile) if profile else None}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create the current user's profile",
    dependencies=[Depends(_write_limit)],
)
async def create_profile(
    body: ProfileFields,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Create the profile. Currency defaults to TRY and language to en;
    onboarding starts incomplete unless the body says otherwise.
    """
    repo = UserProfileRepository(db)
    if await repo.get(user_id) is not None:
        raise ValidationError("Profile already exists. Use PATCH to update it.")

    fields = _clean_fields(body.model_dump(exclude_none=True))
    fields.setdefault("currency", DEFAULT_CURRENCY)
    fields.setdefault("language", DEFAULT_LANGUAGE)
    fields.setdefault("onboarding_completed", False)

    profile = await repo.create(user_id, **fields)
    logger.info(f"Created profile for user {user_id}")
    return {"profile": profile_to_dict(profile)}


@router.patch(
    "",
    summary="Update the current user's profile",
    dependencies=[Depends(_write_limit)],
)
async def update_profile(
    body: ProfileFields,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Only the fields present in the body are changed."""
    fields = _clean_fields(body.model_dump(exclude_unset=True))
    profile = await UserProfileRepository(db).update(user_id, **fields)
    if profile is None:
        raise ResourceNotFoundError("Profile not found")
    return {"profile": profile_to_dict(profile)}


@router.post(
    "/onboarding",
    summary="Complete onboarding",
    dependencies=[Depends(_write_limit)],
)
async def complete_onboarding(
    body: OnboardingRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Save the wizard's currency, language and industry and mark onboarding
    complete, creating the profile if the user has none yet.
    """
    if not body.currency:
        raise ValidationError("Currency is required.")
    if not body.language:
        raise ValidationError("Language is required.")
    if not body.industry or not body.industry.strip():
        raise ValidationError("Industry is required.")

    fields = {
        "currency": _normalize_currency(body.currency),
        "language": _normalize_language(body.language),
        "industry": body.industry.strip(),
        "onboarding_completed": True,
    }

    repo = UserProfileRepository(db)
    profile = await repo.update(user_id, **fields)
    if profile is None:
        profile = await repo.create(user_id, **fields)
    logger.info(f"User {user_id} completed onboarding ({fields['currency']}/{fields['language']})")
    return {"profile": profile_to_dict(profile)}
