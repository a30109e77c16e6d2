"""
User API Routes for ReadCommons.

Handles:
- Registration (with activation mail sent in the background)
- Account activation and password reset via one-time tokens
- Profiles and per-user reading lists and reviews
"""

from dataclasses import replace

from fastapi import APIRouter, Depends, Response, status
from loguru import logger
from starlette.concurrency import run_in_threadpool

from readcommons.api.background import TaskTracker
from readcommons.api.dependencies import (
    ListParams,
    ListQuery,
    Settings,
    ensure_valid,
    get_app_settings,
    get_mailer,
    get_permission_store,
    get_reading_list_store,
    get_review_store,
    get_task_tracker,
    get_token_store,
    get_user_store,
    parse_id,
    require_activated_user,
)
from readcommons.api.middleware.error_handler import FailedValidationError, NotFoundError
from readcommons.api.schemas import (
    MessageEnvelope,
    PasswordReset,
    ReadingListListEnvelope,
    ReviewListEnvelope,
    UserActivate,
    UserCreate,
    UserEnvelope,
)
from readcommons.mailer import Mailer
from readcommons.security import hash_password, validate_password_plaintext, validate_token_plaintext
from readcommons.storage import (
    DEFAULT_USER_PERMISSIONS,
    DuplicateRecordError,
    PermissionStore,
    ReadingListStore,
    RecordNotFoundError,
    ReviewStore,
    TokenScope,
    TokenStore,
    User,
    UserStore,
    validate_user,
)
from readcommons.validator import Validator

router = APIRouter(prefix="/users", tags=["users"])

user_lists_query = ListQuery(ReadingListStore.sort_safelist)
user_reviews_query = ListQuery(ReviewStore.sort_safelist)


def describe_ttl(settings: Settings, scope: TokenScope) -> str:
    if scope == TokenScope.PASSWORD_RESET:
        return f"{settings.password_reset_ttl_minutes} minutes"
    return f"{settings.activation_token_ttl_hours} hours"


# =============================================================================
# Registration & Activation
# =============================================================================

@router.post("", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: UserCreate,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    users: UserStore = Depends(get_user_store),
    permissions: PermissionStore = Depends(get_permission_store),
    tokens: TokenStore = Depends(get_token_store),
    mailer: Mailer = Depends(get_mailer),
    tasks: TaskTracker = Depends(get_task_tracker),
):
    """
    Register a new, not yet activated, user.

    The welcome mail carrying the activation token is sent after the
    response, so a slow mail transport never delays registration.
    """
    user = User(username=body.username, email=body.email, activated=False)

    v = Validator()
    validate_user(v, user, password=body.password)
    ensure_valid(v)

    user.password_hash = await run_in_threadpool(hash_password, body.password, settings.bcrypt_rounds)

    try:
        user = await users.insert(user)
    except DuplicateRecordError:
        raise FailedValidationError({"email": "a user with this email address already exists"})

    await permissions.add_for_user(user.id, *DEFAULT_USER_PERMISSIONS)
    token = await tokens.new(user.id, settings.activation_token_ttl, TokenScope.ACTIVATION)

    tasks.run(
        mailer.send,
        user.email,
        "user_welcome",
        {
            "username": user.username,
            "user_id": user.id,
            "activation_token": token.plaintext,
            "ttl": describe_ttl(settings, TokenScope.ACTIVATION),
        },
    )
    logger.info(f"Registered user {user.id}")

    response.headers["Location"] = f"/api/v1/users/{user.id}"
    return {"user": user}


@router.put("/activated", response_model=UserEnvelope)
async def activate_user(
    body: UserActivate,
    users: UserStore = Depends(get_user_store),
    tokens: TokenStore = Depends(get_token_store),
):
    """Consume an activation token and mark its owner as activated."""
    v = Validator()
    validate_token_plaintext(v, body.token)
    ensure_valid(v)

    try:
        user = await tokens.get_user_for_token(TokenScope.ACTIVATION, body.token)
    except RecordNotFoundError:
        raise FailedValidationError({"token": "invalid or expired activation token"})

    user = await users.update(replace(user, activated=True))
    await tokens.delete_all_for_user(TokenScope.ACTIVATION, user.id)

    logger.info(f"Activated user {user.id}")
    return {"user": user}


@router.put("/password", response_model=MessageEnvelope)
async def reset_password(
    body: PasswordReset,
    settings: Settings = Depends(get_app_settings),
    users: UserStore = Depends(get_user_store),
    tokens: TokenStore = Depends(get_token_store),
):
    """Set a new password using a password-reset token."""
    v = Validator()
    validate_password_plaintext(v, body.password)
    validate_token_plaintext(v, body.token)
    ensure_valid(v)

    try:
        user = await tokens.get_user_for_token(TokenScope.PASSWORD_RESET, body.token)
    except RecordNotFoundError:
        raise FailedValidationError({"token": "invalid or expired password reset token"})

    password_hash = await run_in_threadpool(hash_password, body.password, settings.bcrypt_rounds)
    await users.update(replace(user, password_hash=password_hash))
    await tokens.delete_all_for_user(TokenScope.PASSWORD_RESET, user.id)

    return {"message": "your password was successfully reset"}


# =============================================================================
# Profiles
# =============================================================================

@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user_profile(
    user_id: str,
    current_user: User = Depends(require_activated_user),
    users: UserStore = Depends(get_user_store),
):
    return {"user": await users.get(parse_id(user_id))}


@router.get("/{user_id}/lists", response_model=ReadingListListEnvelope)
async def list_user_reading_lists(
    user_id: str,
    current_user: User = Depends(require_activated_user),
    params: ListParams = Depends(user_lists_query),
    users: UserStore = Depends(get_user_store),
    lists: ReadingListStore = Depends(get_reading_list_store),
):
    user_id = parse_id(user_id)
    if not await users.exists(user_id):
        raise NotFoundError()

    records, metadata = await lists.list_for_user(user_id, params.filters)
    return {"reading_lists": records, "@metadata": metadata}


@router.get("/{user_id}/reviews", response_model=ReviewListEnvelope)
async def list_user_reviews(
    user_id: str,
    current_user: User = Depends(require_activated_user),
    params: ListParams = Depends(user_reviews_query),
    users: UserStore = Depends(get_user_store),
    reviews: ReviewStore = Depends(get_review_store),
):
    user_id = parse_id(user_id)
    if not await users.exists(user_id):
        raise NotFoundError()

    records, metadata = await reviews.list_for_user(user_id, params.filters)
    return {"reviews": records, "@metadata": metadata}
