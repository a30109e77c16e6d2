"""
Token API Routes for ReadCommons.

Handles:
- Authentication token issue (email + password login)
- Re-issuing activation tokens
- Password-reset tokens
"""

from fastapi import APIRouter, Depends, status
from loguru import logger
from starlette.concurrency import run_in_threadpool

from readcommons.api.background import TaskTracker
from readcommons.api.dependencies import (
    Settings,
    ensure_valid,
    get_app_settings,
    get_mailer,
    get_task_tracker,
    get_token_store,
    get_user_store,
)
from readcommons.api.middleware.error_handler import (
    INVALID_CREDENTIALS_MESSAGE,
    AuthenticationError,
    FailedValidationError,
)
from readcommons.api.routes.users import describe_ttl
from readcommons.api.schemas import AuthenticationTokenEnvelope, Credentials, EmailRequest, MessageEnvelope
from readcommons.mailer import Mailer
from readcommons.security import password_matches, validate_password_plaintext
from readcommons.storage import RecordNotFoundError, TokenScope, TokenStore, User, UserStore
from readcommons.storage.users import validate_email
from readcommons.validator import Validator

router = APIRouter(prefix="/tokens", tags=["tokens"])


async def _get_user_by_email(users: UserStore, email: str) -> User:
    v = Validator()
    validate_email(v, email)
    ensure_valid(v)

    try:
        return await users.get_by_email(email)
    except RecordNotFoundError:
        raise FailedValidationError({"email": "no matching email address found"})


@router.post(
    "/authentication",
    response_model=AuthenticationTokenEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_authentication_token(
    body: Credentials,
    settings: Settings = Depends(get_app_settings),
    users: UserStore = Depends(get_user_store),
    tokens: TokenStore = Depends(get_token_store),
):
    """
    Exchange an email and password for a bearer token.

    Unknown emails and wrong passwords get the same 401.
    """
    v = Validator()
    validate_email(v, body.email)
    validate_password_plaintext(v, body.password)
    ensure_valid(v)

    try:
        user = await users.get_by_email(body.email)
    except RecordNotFoundError:
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    if not await run_in_threadpool(password_matches, body.password, user.password_hash):
        logger.info(f"Failed login for user {user.id}")
        raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

    token = await tokens.new(user.id, settings.auth_token_ttl, TokenScope.AUTHENTICATION)
    return {"authentication_token": {"token": token.plaintext, "expiry": token.expiry}}


@router.post("/activation", response_model=MessageEnvelope, status_code=status.HTTP_202_ACCEPTED)
async def create_activation_token(
    body: EmailRequest,
    settings: Settings = Depends(get_app_settings),
    users: UserStore = Depends(get_user_store),
    tokens: TokenStore = Depends(get_token_store),
    mailer: Mailer = Depends(get_mailer),
    tasks: TaskTracker = Depends(get_task_tracker),
):
    user = await _get_user_by_email(users, body.email)
    if user.activated:
        raise FailedValidationError({"email": "user has already been activated"})

    token = await tokens.new(user.id, settings.activation_token_ttl, TokenScope.ACTIVATION)
    tasks.run(
        mailer.send,
        user.email,
        "token_activation",
        {
            "activation_token": token.plaintext,
            "ttl": describe_ttl(settings, TokenScope.ACTIVATION),
        },
    )
    return {"message": "an email will be sent to you containing activation instructions"}


@router.post("/password-reset", response_model=MessageEnvelope, status_code=status.HTTP_202_ACCEPTED)
async def create_password_reset_token(
    body: EmailRequest,
    settings: Settings = Depends(get_app_settings),
    users: UserStore = Depends(get_user_store),
    tokens: TokenStore = Depends(get_token_store),
    mailer: Mailer = Depends(get_mailer),
    tasks: TaskTracker = Depends(get_task_tracker),
):
    user = await _get_user_by_email(users, body.email)
    if not user.activated:
        raise FailedValidationError({"email": "user account must be activated"})

    token = await tokens.new(user.id, settings.password_reset_ttl, TokenScope.PASSWORD_RESET)
    tasks.run(
        mailer.send,
        user.email,
        "token_password_reset",
        {
            "password_reset_token": token.plaintext,
            "ttl": describe_ttl(settings, TokenScope.PASSWORD_RESET),
        },
    )
    return {"message": "an email will be sent to you containing password reset instructions"}
