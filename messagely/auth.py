"""
Authorization gate.

Each protected route declares an ordered chain of predicates. A predicate
is a plain function ``predicate(ctx) -> Decision`` over an AuthContext;
run_chain evaluates them in order and stops at the first denial. The gate
keeps no state between requests: every decision is a function of the
token on the inbound request and the stored records.

Predicates:
- identity_resolved: verify the token and attach the claim; never denies
- logged_in: a claim is present
- correct_user: the claim names the user addressed by the path
- correspondent: the claim is the sender or recipient of the addressed message
- recipient: the claim is the recipient of the addressed message
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from messagely.config import settings
from messagely.errors import NotFound, Unauthorized
from messagely.logging_utils import log_auth_data
from messagely.messages import get_message_parties
from messagely.metrics import record_auth_decision
from messagely.security import IdentityClaim, extract_token, resolve_identity
from messagely.storage import get_db
from messagely.users import user_exists

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


ALLOW = Decision(allowed=True)


def deny(reason: str) -> Decision:
    return Decision(allowed=False, reason=reason)


@dataclass
class AuthContext:
    """Per-request authorization state shared by the predicates of one chain."""
    db: Session
    token: Optional[str] = None
    claim: Optional[IdentityClaim] = None
    path_params: Dict[str, str] = field(default_factory=dict)
    # (from_username, to_username) of the addressed message, once loaded
    message_parties: Optional[tuple] = None
    # None while pending
    decision: Optional[Decision] = None
    revalidate_user: bool = False

    @property
    def username(self) -> Optional[str]:
        return self.claim.username if self.claim else None


Predicate = Callable[[AuthContext], Decision]


# =============================================================================
# Predicates
# =============================================================================

def identity_resolved(ctx: AuthContext) -> Decision:
    ctx.claim = resolve_identity(ctx.token)
    return ALLOW


def logged_in(ctx: AuthContext) -> Decision:
    if ctx.claim is None:
        return deny("no valid token")
    if ctx.revalidate_user and not user_exists(ctx.db, ctx.claim.username):
        return deny("token user no longer exists")
    return ALLOW


def correct_user(ctx: AuthContext) -> Decision:
    if ctx.claim is None:
        return deny("no valid token")
    if ctx.claim.username != ctx.path_params.get("username"):
        return deny("token user does not match addressed user")
    return ALLOW


def _load_message_parties(ctx: AuthContext) -> Optional[tuple]:
    """
    Sender and recipient of the addressed message, or None.

    A malformed or unknown id gives None: callers turn that into the same
    denial as "not your message", so message existence is never revealed.
    """
    if ctx.message_parties is not None:
        return ctx.message_parties
    try:
        message_id = int(ctx.path_params.get("id", ""))
    except ValueError:
        return None
    try:
        ctx.message_parties = get_message_parties(ctx.db, message_id)
    except NotFound:
        return None
    return ctx.message_parties


def correspondent(ctx: AuthContext) -> Decision:
    if ctx.claim is None:
        return deny("no valid token")
    parties = _load_message_parties(ctx)
    if parties is None:
        return deny("message not found")
    if ctx.claim.username not in parties:
        return deny("not a correspondent of message")
    return ALLOW


def recipient(ctx: AuthContext) -> Decision:
    if ctx.claim is None:
        return deny("no valid token")
    parties = _load_message_parties(ctx)
    if parties is None:
        return deny("message not found")
    _, to_username = parties
    if ctx.claim.username != to_username:
        return deny("not the recipient of message")
    return ALLOW


# =============================================================================
# Chain runner
# =============================================================================

def run_chain(ctx: AuthContext, predicates: Sequence[Predicate]) -> Decision:
    """
    Evaluate predicates in order, stopping at the first denial.

    The final decision is also stored on ctx.decision.
    """
    decision = ALLOW
    last = "none"
    for predicate in predicates:
        last = predicate.__name__
        decision = predicate(ctx)
        if not decision.allowed:
            break

    ctx.decision = decision
    record_auth_decision(last, decision.allowed)
    return decision


LOGGED_IN = (logged_in,)
CORRECT_USER = (logged_in, correct_user)
CORRESPONDENT = (logged_in, correspondent)
RECIPIENT = (logged_in, recipient)


def require(*predicates: Predicate):
    """
    Build a FastAPI dependency that gates a route on a predicate chain.

    identity_resolved always runs first, ahead of the given predicates.

    The dependency returns the AuthContext on success and raises
    Unauthorized on denial.
    """
    chain = (identity_resolved, *predicates)

    async def gate(request: Request, db: Session = Depends(get_db)) -> AuthContext:
        ctx = AuthContext(
            db=db,
            token=await extract_token(request),
            path_params=dict(request.path_params),
            revalidate_user=settings.REVALIDATE_TOKEN_USER,
        )
        decision = run_chain(ctx, chain)

        if not decision.allowed:
            logger.info(f"Request denied: {decision.reason}")
            log_auth_data(request, username=ctx.username, result="denied", reason=decision.reason)
            raise Unauthorized()

        log_auth_data(request, username=ctx.username, result="allowed")
        return ctx

    return gate
