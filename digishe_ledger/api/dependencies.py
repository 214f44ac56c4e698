"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from digishe_ledger.config import settings
from digishe_ledger.domain.ledger import LedgerSession, SessionRegistry
from digishe_ledger.domain.models import Business
from digishe_ledger.domain.verification import PhoneVerificationFlow
from digishe_ledger.infrastructure.clients.insight import InsightClient
from digishe_ledger.infrastructure.clients.sms import SmsGatewayClient
from digishe_ledger.infrastructure.database.repositories import ProfileRepository
from digishe_ledger.infrastructure.database.session import SessionLocal, get_db
from digishe_ledger.infrastructure.database.store import LedgerStore


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_sms_client() -> SmsGatewayClient:
    """Provide SMS gateway client instance"""
    return SmsGatewayClient()


def get_insight_client() -> InsightClient:
    """Provide business tip generator"""
    return InsightClient()


def get_ledger_store() -> LedgerStore:
    """Provide storage facade for ledger sessions"""
    return LedgerStore(SessionLocal)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_verification_flow(
    db: Session = Depends(get_db),
    sms_client: SmsGatewayClient = Depends(get_sms_client),
) -> PhoneVerificationFlow:
    return PhoneVerificationFlow(
        gateway=sms_client,
        identities=ProfileRepository(db),
        country_prefix=settings.country_prefix,
        admin_phones=settings.admin_phones,
    )


def get_session_token(authorization: str | None = Header(None)) -> str:
    """Bearer token from the Authorization header"""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Not signed in")
    return token.strip()


def get_ledger_session(
    token: str = Depends(get_session_token),
    registry: SessionRegistry = Depends(get_registry),
) -> LedgerSession:
    """Ledger session for the signed-in caller"""
    session = registry.get(token)
    if session is None:
        raise HTTPException(status_code=401, detail="Session expired. Please sign in again.")
    return session


def require_active_business(session: LedgerSession = Depends(get_ledger_session)) -> Business:
    """Route guard: entries may only be recorded against an activated business"""
    if session.business is None:
        raise HTTPException(status_code=409, detail="Complete onboarding before recording entries")
    if not session.business.is_active:
        raise HTTPException(status_code=403, detail="Your business is awaiting activation")
    return session.business


def require_admin(session: LedgerSession = Depends(get_ledger_session)) -> LedgerSession:
    if not session.identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return session
