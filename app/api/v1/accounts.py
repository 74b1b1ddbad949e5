"""Account management — list, pre-register and rename school members."""

import uuid

from fastapi import APIRouter, status

from app.api.deps import AccountsAuth, Session
from app.core.errors import ForbiddenError
from app.models.account import AccountPreregister, AccountRead, AccountUpdate, to_account_read
from app.services.accounts import list_accounts, preregister_account, rename_account

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=list[AccountRead])
async def get_accounts(auth: AccountsAuth, session: Session) -> list[AccountRead]:
    if auth.tenant_id is None:
        raise ForbiddenError("Accounts belong to a school")
    return [to_account_read(p) for p in await list_accounts(session, auth.tenant_id)]


@router.post("", response_model=AccountRead, status_code=status.HTTP_201_CREATED)
async def create_account(
    body: AccountPreregister,
    auth: AccountsAuth,
    session: Session,
) -> AccountRead:
    """Pre-register a member; they activate access through an invitation."""
    profile = await preregister_account(
        session,
        auth.account_id,
        name=body.name,
        email=body.email,
        role=body.role,
        enrollment_id=body.enrollment_id,
    )
    return to_account_read(profile)


@router.patch("/{account_id}", response_model=AccountRead)
async def update_account(
    account_id: uuid.UUID,
    body: AccountUpdate,
    auth: AccountsAuth,
    session: Session,
) -> AccountRead:
    profile = await rename_account(session, auth.account_id, account_id, body.name)
    return to_account_read(profile)
