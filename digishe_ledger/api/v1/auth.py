"""POST /v1/auth/* - phone verification sign-in and sign-out"""

import logging
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import SQLAlchemyError

from digishe_ledger.api.v1.schemas import (
    CodeRequest,
    CodeRequestResponse,
    IdentitySchema,
    VerifyRequest,
    VerifyResponse,
)
from digishe_ledger.api.dependencies import (
    get_ledger_store,
    get_registry,
    get_request_id,
    get_session_token,
    get_verification_flow,
)
from digishe_ledger.config import settings
from digishe_ledger.domain.exceptions import DomainException, StorageError
from digishe_ledger.domain.ledger import LedgerSession, SessionRegistry
from digishe_ledger.domain.verification import PhoneVerificationFlow
from digishe_ledger.infrastructure.database.store import LedgerStore
from digishe_ledger.infrastructure.observability.logging import log_verification
from digishe_ledger.infrastructure.observability.metrics import record_otp_request, record_otp_verification

router = APIRouter()


@router.post("/auth/request-code", response_model=CodeRequestResponse)
async def request_code(
    body: CodeRequest,
    request: Request,
    flow: PhoneVerificationFlow = Depends(get_verification_flow),
):
    """
    Send a one-time code by SMS.

    Login requires an existing account, registration requires a new number.
    Calling again resends: the gateway replaces the previous code.
    """
    request_id = get_request_id(request)
    phone = flow.normalize(body.phone)

    try:
        await flow.request_code(phone, body.intent)
    except DomainException as e:
        record_otp_request(e.kind)
        log_verification(phone, "request_code", e.kind, request_id)
        raise
    except SQLAlchemyError as e:
        record_otp_request("storage_error")
        raise StorageError("Could not look up account") from e

    record_otp_request("sent")
    log_verification(phone, "request_code", "sent", request_id)
    return CodeRequestResponse(phone=phone)


@router.post("/auth/verify", response_model=VerifyResponse)
async def verify_code(
    body: VerifyRequest,
    request: Request,
    flow: PhoneVerificationFlow = Depends(get_verification_flow),
    store: LedgerStore = Depends(get_ledger_store),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Verify the code, resolve the identity and open a ledger session.

    Flow:
    1. Check the code with the SMS gateway
    2. Look up or create the profile for this phone
    3. Load business, entries and savings into a new session
    4. Return the session token
    """
    request_id = get_request_id(request)
    phone = flow.normalize(body.phone)

    try:
        identity = await flow.verify_code(phone, body.code, body.name)
    except DomainException as e:
        record_otp_verification(e.kind)
        log_verification(phone, "verify_code", e.kind, request_id)
        raise
    except SQLAlchemyError as e:
        record_otp_verification("storage_error")
        raise StorageError("Could not save account") from e

    record_otp_verification("verified")
    log_verification(phone, "verify_code", "verified", request_id)

    # One live session per identity; earlier writes settle before the reload
    for previous in registry.close_phone(identity.phone_number):
        await previous.wait_for_sync()

    session = LedgerSession(
        identity,
        store,
        category_prompt_threshold=settings.category_prompt_threshold,
        sync_max_retries=settings.sync_max_retries,
        sync_backoff_base=settings.sync_backoff_base,
    )
    try:
        await session.load()
    except StorageError as e:
        # Sign-in still succeeds; the dashboard retries the load
        logging.warning(f"Initial ledger load failed: {e}", extra={"request_id": request_id})

    token = registry.open(session)
    return VerifyResponse(session_token=token, identity=IdentitySchema.from_domain(session.identity))


@router.post("/auth/logout", status_code=204)
async def logout(
    token: str = Depends(get_session_token),
    registry: SessionRegistry = Depends(get_registry),
):
    """Close the session once its pending writes have settled"""
    session = registry.close(token)
    if session is not None:
        await session.wait_for_sync()
    return Response(status_code=204)
