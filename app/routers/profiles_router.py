"""Profiles API: messenger profiles (bot tokens, MAX tokens, personal sessions)."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from app.constants.messengers import MessengerType
from app.db import get_db
from app.schemas.profile import ProfileCreate, ProfileDomainLink, ProfileRead
from app.services.profile_service import ProfileService

router = APIRouter(
    prefix="/profiles",
    tags=["profiles"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=Page[ProfileRead])
def list_profiles(
    owner_id: Optional[str] = None,
    messenger_type: Optional[MessengerType] = None,
    params: Params = Depends(),
    db: Session = Depends(get_db),
) -> Page[ProfileRead]:
    """List profiles with pagination."""
    svc = ProfileService(db)
    query = svc.get_profiles_query(owner_id=owner_id, messenger_type=messenger_type)
    return paginate(query, params=params)


@router.post("", response_model=ProfileRead, status_code=201)
async def create_profile(
    data: ProfileCreate,
    db: Session = Depends(get_db),
) -> ProfileRead:
    """Create a profile and register its webhook where the backend allows it."""
    svc = ProfileService(db)
    return await svc.create_profile(data)


@router.get("/{profile_id}", response_model=ProfileRead)
def get_profile(
    profile_id: UUID,
    db: Session = Depends(get_db),
) -> ProfileRead:
    svc = ProfileService(db)
    profile = svc.get_profile(profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("/{profile_id}/domain", response_model=ProfileRead)
def link_profile_domain(
    profile_id: UUID,
    data: ProfileDomainLink,
    db: Session = Depends(get_db),
) -> ProfileRead:
    """Link a profile to a tenant domain."""
    svc = ProfileService(db)
    profile = svc.link_domain(profile_id, data.domain)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.delete("/{profile_id}", status_code=204)
async def delete_profile(
    profile_id: UUID,
    db: Session = Depends(get_db),
) -> None:
    """Delete a profile together with its chat connections."""
    svc = ProfileService(db)
    if not await svc.delete_profile(profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
