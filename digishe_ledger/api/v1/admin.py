"""Admin panel endpoints: business activation and admin grants"""

import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from digishe_ledger.api.v1.schemas import (
    ActivationRequest,
    AdminBusinessItem,
    AdminBusinessesResponse,
    AdminFlagRequest,
    BusinessSchema,
    IdentitySchema,
)
from digishe_ledger.api.dependencies import get_registry, require_admin
from digishe_ledger.config import settings
from digishe_ledger.domain.exceptions import StorageError
from digishe_ledger.domain.ledger import SessionRegistry
from digishe_ledger.domain.phone import normalize
from digishe_ledger.infrastructure.database.session import get_db
from digishe_ledger.infrastructure.database.repositories import (
    BusinessRepository,
    ProfileRepository,
    to_business,
    to_identity,
)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/admin/businesses", response_model=AdminBusinessesResponse)
def list_businesses(db: Session = Depends(get_db)):
    """All registered businesses with their owners, newest first"""
    rows = BusinessRepository(db).list_all()
    return AdminBusinessesResponse(
        businesses=[
            AdminBusinessItem(business=BusinessSchema.from_domain(to_business(row)), owner_name=row.owner.name)
            for row in rows
        ]
    )


@router.post("/admin/businesses/{business_id}/activation", response_model=BusinessSchema)
def set_business_activation(
    business_id: str,
    body: ActivationRequest,
    db: Session = Depends(get_db),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Activate or deactivate a business.

    Open sessions of the owner see the change immediately.
    """
    try:
        business_uuid = uuid.UUID(business_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid business ID format")

    try:
        row = BusinessRepository(db).set_active(business_uuid, body.is_active)
        if row is None:
            raise HTTPException(status_code=404, detail="Business not found")
        business = to_business(row)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("Could not update business") from e

    for session in registry.for_phone(business.owner_phone):
        session.apply_business_update(business)

    return BusinessSchema.from_domain(business)


@router.post("/admin/profiles/{phone}/admin", response_model=IdentitySchema)
def set_admin_flag(
    phone: str,
    body: AdminFlagRequest,
    db: Session = Depends(get_db),
    registry: SessionRegistry = Depends(get_registry),
):
    """Grant or revoke admin rights"""
    canonical = normalize(phone, settings.country_prefix)

    try:
        profile = ProfileRepository(db).set_admin(canonical, body.is_admin)
        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        identity = to_identity(profile)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("Could not update profile") from e

    for session in registry.for_phone(canonical):
        session.identity.is_admin = identity.is_admin

    return IdentitySchema.from_domain(identity)
