import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, Request, Depends, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from messagely import messages, users
from messagely.auth import AuthContext, CORRECT_USER, CORRESPONDENT, LOGGED_IN, RECIPIENT, require
from messagely.config import settings
from messagely.errors import BadRequest, MessagelyError
from messagely.logging_utils import setup_logging, RequestLoggingMiddleware
from messagely.metrics import get_metrics, get_metrics_content_type, messages_read_total, messages_sent_total
from messagely.schemas import (
    CreatedMessage,
    CreatedMessageResponse,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    MessageDetailResponse,
    ReadReceiptResponse,
    ReceivedMessagesResponse,
    RegisterRequest,
    SendMessageRequest,
    SentMessagesResponse,
    TokenResponse,
    UserResponse,
    UsersListResponse,
)
from messagely.security import issue_token
from messagely.storage import init_db, check_db_health, get_db


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


app = FastAPI(
    title="Messagely API",
    description="Private text messaging between registered users",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

UNAUTHORIZED_RESPONSE = {401: {"model": ErrorResponse, "description": "Unauthorized"}}


# =============================================================================
# Error Handlers
# =============================================================================

def messagely_error_response(exc: MessagelyError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(MessagelyError)
async def messagely_error_handler(request: Request, exc: MessagelyError) -> JSONResponse:
    return messagely_error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    logger.info(f"Validation error: {details}")
    return messagely_error_response(BadRequest(details or "Invalid request"))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": exc.status_code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. SECRET_KEY is set (non-empty)
    2. DB is reachable and both tables exist

    Otherwise returns 503 (Service Unavailable).
    """
    if not settings.SECRET_KEY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason="SECRET_KEY not configured")

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Auth Routes
# =============================================================================

# Plain def: bcrypt is CPU-bound, so these run in the threadpool

@app.post(
    "/auth/register",
    response_model=TokenResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid registration data"},
        409: {"model": ErrorResponse, "description": "Username already taken"},
    }
)
def register(data: RegisterRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """
    Register a user and log them in.

    {username, password, first_name, last_name, phone} => {token}
    """
    user = users.register(
        db,
        username=data.username,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
    )
    return TokenResponse(token=issue_token(user.username))


@app.post(
    "/auth/login",
    response_model=TokenResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid username/password"}}
)
def login(data: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """
    {username, password} => {token}

    Updates the user's last-login time on success.
    """
    if not users.authenticate(db, data.username, data.password):
        logger.info("Login rejected")
        raise BadRequest("Invalid username/password")

    token = issue_token(data.username)
    users.update_login_timestamp(db, data.username)
    logger.info(f"User logged in: {data.username}")
    return TokenResponse(token=token)


# =============================================================================
# User Routes
# =============================================================================

@app.get("/users", response_model=UsersListResponse, responses=UNAUTHORIZED_RESPONSE)
async def list_users(ctx: AuthContext = Depends(require(*LOGGED_IN))) -> UsersListResponse:
    """List all users: {users: [{username, first_name, last_name, phone}, ...]}"""
    return UsersListResponse(users=users.all_users(ctx.db))


@app.get(
    "/users/{username}",
    response_model=UserResponse,
    responses={**UNAUTHORIZED_RESPONSE, 404: {"model": ErrorResponse, "description": "No such user"}}
)
async def get_user(username: str, ctx: AuthContext = Depends(require(*LOGGED_IN))) -> UserResponse:
    """{user: {username, first_name, last_name, phone, join_at, last_login_at}}"""
    return UserResponse(user=users.get_user(ctx.db, username))


@app.get("/users/{username}/to", response_model=ReceivedMessagesResponse, responses=UNAUTHORIZED_RESPONSE)
async def get_messages_to(
    username: str,
    ctx: AuthContext = Depends(require(*CORRECT_USER))
) -> ReceivedMessagesResponse:
    """Messages received by the user: {messages: [{id, body, sent_at, read_at, from_user}, ...]}"""
    return ReceivedMessagesResponse(messages=users.messages_to(ctx.db, username))


@app.get("/users/{username}/from", response_model=SentMessagesResponse, responses=UNAUTHORIZED_RESPONSE)
async def get_messages_from(
    username: str,
    ctx: AuthContext = Depends(require(*CORRECT_USER))
) -> SentMessagesResponse:
    """Messages sent by the user: {messages: [{id, body, sent_at, read_at, to_user}, ...]}"""
    return SentMessagesResponse(messages=users.messages_from(ctx.db, username))


# =============================================================================
# Message Routes
# =============================================================================

@app.get("/messages/{id}", response_model=MessageDetailResponse, responses=UNAUTHORIZED_RESPONSE)
async def get_message(id: int, ctx: AuthContext = Depends(require(*CORRESPONDENT))) -> MessageDetailResponse:
    """
    {message: {id, body, sent_at, read_at, from_user, to_user}}

    Only the sender or recipient may read a message.
    """
    return MessageDetailResponse(message=messages.get_message(ctx.db, id))


@app.post(
    "/messages",
    response_model=CreatedMessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **UNAUTHORIZED_RESPONSE,
        400: {"model": ErrorResponse, "description": "Recipient does not exist"},
    }
)
async def send_message(
    data: SendMessageRequest,
    ctx: AuthContext = Depends(require(*LOGGED_IN))
) -> CreatedMessageResponse:
    """
    {to_username, body} => {message: {id, from_username, to_username, body, sent_at, read_at}}

    The sender is always the logged-in user.
    """
    message = messages.create_message(
        ctx.db,
        from_username=ctx.username,
        to_username=data.to_username,
        body=data.body,
    )
    messages_sent_total.inc()
    return CreatedMessageResponse(message=CreatedMessage.model_validate(message))


@app.post(
    "/messages/{id}/read",
    response_model=ReadReceiptResponse,
    responses={
        **UNAUTHORIZED_RESPONSE,
        400: {"model": ErrorResponse, "description": "Message already read"},
    }
)
async def mark_message_read(id: int, ctx: AuthContext = Depends(require(*RECIPIENT))) -> ReadReceiptResponse:
    """
    {message: {id, read_at}}

    Only the recipient may mark a message read, and only once.
    """
    receipt = messages.mark_read(ctx.db, id)
    messages_read_total.inc()
    return ReadReceiptResponse(message=receipt)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
