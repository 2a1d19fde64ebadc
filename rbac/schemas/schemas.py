"""Pydantic schemas for API request/response serialization."""

from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, Optional, List, Dict, Any
from datetime import datetime

from rbac.models.activity import ActivityAction, ActivityStatus
from rbac.models.permission import PermissionCategoryEnum
from rbac.models.user import UserStatusEnum


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


Text = Annotated[str, AfterValidator(_not_blank)]


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=1)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

class RefreshRequest(BaseModel):
    refresh_token: str

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1)

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


# ---- Permission ----
class PermissionCreate(BaseModel):
    name: Text = Field(..., min_length=1, max_length=100)
    description: Text = Field(..., min_length=1)
    category: PermissionCategoryEnum

class PermissionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[PermissionCategoryEnum] = None
    is_active: Optional[bool] = None

class PermissionBulkItem(PermissionUpdate):
    id: int

class PermissionBulkUpdate(BaseModel):
    permissions: List[PermissionBulkItem]

class PermissionOut(BaseModel):
    id: int
    name: str
    description: str
    category: PermissionCategoryEnum
    is_active: bool = True
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PermissionBrief(BaseModel):
    id: int
    name: str
    description: str

    class Config:
        from_attributes = True


# ---- Role ----
class RoleCreate(BaseModel):
    name: Text = Field(..., min_length=1, max_length=100)
    description: Text = Field(..., min_length=1)
    permission_ids: List[int] = []
    parent_id: Optional[int] = None

class RoleUpdate(BaseModel):
    """Partial update; send ``parent_id: null`` to make the role a root."""
    name: Optional[Text] = Field(None, min_length=1, max_length=100)
    description: Optional[Text] = Field(None, min_length=1)
    permission_ids: Optional[List[int]] = None
    parent_id: Optional[int] = None

class RoleClone(BaseModel):
    name: Text = Field(..., min_length=1, max_length=100)
    description: Text = Field(..., min_length=1)

class RoleBrief(BaseModel):
    id: int
    name: str
    description: str

    class Config:
        from_attributes = True

class CreatorBrief(BaseModel):
    id: int
    full_name: str
    email: str

    class Config:
        from_attributes = True

class RoleOut(BaseModel):
    id: int
    name: str
    description: str
    level: int
    parent_id: Optional[int] = None
    parent: Optional[RoleBrief] = None
    permissions: List[PermissionBrief] = []
    creator: Optional[CreatorBrief] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RoleUpdateResponse(BaseModel):
    role: RoleOut
    relevelled_role_ids: List[int] = []

class HasPermissionResponse(BaseModel):
    role_id: int
    permission_id: int
    granted: bool


# ---- User ----
class UserOut(BaseModel):
    id: int
    email: str
    full_name: str
    role_id: int
    role: Optional[str] = None
    status: UserStatusEnum
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role_id=user.role_id,
            role=user.role.name if user.role else None,
            status=user.status,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )

class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=4)
    full_name: str = Field(..., min_length=1)
    role_id: int
    password: Optional[str] = Field(None, min_length=6)

class UserCreateResponse(BaseModel):
    user: UserOut
    generated_password: Optional[str] = None

class UserUpdateRequest(BaseModel):
    email: Optional[str] = Field(None, min_length=4)
    full_name: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=6)
    role_id: Optional[int] = None

class UserRoleRequest(BaseModel):
    role_id: int

class UserStatusRequest(BaseModel):
    status: UserStatusEnum

class BulkStatusRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    status: UserStatusEnum

class BulkRoleRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    role_id: int

class UserListResponse(BaseModel):
    users: List[UserOut]
    total: int
    page: int
    page_size: int

class MeResponse(BaseModel):
    user: UserOut
    permissions: List[str]


# ---- Session ----
class SessionOut(BaseModel):
    id: int
    user_id: int
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    is_active: bool
    last_activity: Optional[datetime] = None
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SessionStats(BaseModel):
    active_sessions: int
    expired_sessions: int
    total_sessions: int


# ---- Activity ----
class ActivityOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: ActivityAction
    details: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    metadata_json: Optional[str] = None
    status: ActivityStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ActivityListResponse(BaseModel):
    activities: List[ActivityOut]
    total: int
    page: int
    page_size: int

class ActivityStat(BaseModel):
    action: str
    count: int
    success_rate: float
    failure_rate: float
    warning_rate: float


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None

class CountResponse(BaseModel):
    count: int
