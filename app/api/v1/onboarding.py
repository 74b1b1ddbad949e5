"""Administrator onboarding — the tenant bootstrap invite sent at provisioning."""

from fastapi import APIRouter

from app.api.deps import Session
from app.api.v1.invitations import (
    RedeemRequest,
    RedeemResponse,
    SecretLookup,
    TokenContextResponse,
    context_response,
    redeem_response,
)
from app.services.redemption import redeem_bootstrap_invite, validate_bootstrap_invite

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.post("/lookup", response_model=TokenContextResponse, summary="Describe an onboarding link")
async def lookup(body: SecretLookup, session: Session) -> TokenContextResponse:
    return context_response(await validate_bootstrap_invite(session, body.secret))


@router.post("/redeem", response_model=RedeemResponse, summary="Create the school's first administrator")
async def redeem(body: RedeemRequest, session: Session) -> RedeemResponse:
    """Consume the onboarding secret and create the administrator account.

    The administrator always chooses an email and password; the enrollment
    id field is ignored here.
    """
    return redeem_response(await redeem_bootstrap_invite(session, body.secret, body.details()))
