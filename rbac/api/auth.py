"""Auth API router: login, register, refresh, logout, me, password change."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rbac.db.session import get_db
from rbac.schemas.schemas import (
    LoginRequest, RegisterRequest, RefreshRequest, ChangePasswordRequest,
    TokenResponse, UserOut, MeResponse, MessageResponse,
)
from rbac.services.auth_service import auth_service
from rbac.services.role_service import role_service
from rbac.services.activity_service import activity_service, client_ip
from rbac.services.user_service import user_service
from rbac.models.activity import ActivityAction, ActivityStatus
from rbac.core.security import AuthContext, get_auth_context
from rbac.core.exceptions import AuthenticationError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate, open a session and return JWT tokens."""
    try:
        result = auth_service.authenticate(
            db, body.email, body.password,
            user_agent=request.headers.get("user-agent"),
            ip_address=client_ip(request),
        )
    except AuthenticationError as e:
        known = user_service.get_by_email(db, body.email)
        activity_service.log_from_request(
            db, request, known.id if known else None, ActivityAction.FAILED_LOGIN,
            f"Failed login attempt for {body.email}: {e.message}",
            status=ActivityStatus.failure,
        )
        raise
    activity_service.log_from_request(
        db, request, result["user"]["id"], ActivityAction.LOGIN,
        "User logged in",
    )
    return result


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """Self-service sign-up; new accounts always start on the ``guest`` role."""
    user = auth_service.register(db, body.email, body.password, body.full_name)
    activity_service.log_from_request(
        db, request, user.id, ActivityAction.USER_CREATED,
        f"User {user.full_name} ({user.email}) registered",
    )
    return UserOut.from_user(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, request: Request, db: Session = Depends(get_db)):
    """Rotate the token pair of the session behind a refresh token."""
    result = auth_service.refresh(db, body.refresh_token)
    activity_service.log_from_request(
        db, request, result["user"]["id"], ActivityAction.SESSION_REFRESHED,
        "Session refreshed",
    )
    return result


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """End the current session."""
    auth_service.logout(db, ctx.session)
    activity_service.log_from_request(
        db, request, ctx.user.id, ActivityAction.LOGOUT, "User logged out",
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=MeResponse)
async def get_me(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Current user profile with the names of every effective permission."""
    permissions = role_service.get_effective_permissions(db, ctx.user.role_id)
    return MeResponse(
        user=UserOut.from_user(ctx.user),
        permissions=[p.name for p in permissions if p.is_active],
    )


@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
):
    """Change the password; other sessions end and fresh tokens are issued."""
    result = auth_service.change_password(
        db, ctx.user, ctx.session, body.current_password, body.new_password,
    )
    activity_service.log_from_request(
        db, request, ctx.user.id, ActivityAction.PASSWORD_CHANGE, "Password changed",
    )
    return result
