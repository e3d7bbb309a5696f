"""Authentication API endpoints."""

from fastapi import APIRouter
import structlog

from messagely.errors import AuthenticationFailed
from messagely.models.auth import LoginRequest, RegisterRequest, TokenResponse
from messagely.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login")
async def login(request: LoginRequest) -> TokenResponse:
    """Login with username and password.

    Args:
        request: Login credentials

    Returns:
        TokenResponse with a fresh session token

    Raises:
        AuthenticationFailed (400): Same response for an unknown user and a
            wrong password
    """
    auth_service = AuthService()

    if not await auth_service.authenticate(request.username, request.password):
        logger.info("login_failed", username=request.username)
        raise AuthenticationFailed()

    token = auth_service.issue_token(request.username)
    auth_service.record_login(request.username)

    logger.info("user_logged_in", username=request.username)
    return TokenResponse(token=token)


@router.post("/register")
async def register(request: RegisterRequest) -> TokenResponse:
    """Register a new user and log them in.

    Args:
        request: New account details

    Returns:
        TokenResponse with a session token for the new user

    Raises:
        DuplicateUsername (400): If the username is taken
    """
    auth_service = AuthService()

    user = await auth_service.register(
        username=request.username,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )

    token = auth_service.issue_token(user.username)
    auth_service.record_login(user.username)

    return TokenResponse(token=token)
