import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...models import DEFAULT_AVATAR, User
from ...services.avatar import avatar_color, get_initials


# Field checks live in the services; inputs stay untyped so those checks
# produce the client-facing messages.
class SendOtpIn(BaseModel):
    email: Any = None


class VerifyOtpIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Any = None
    otp: Any = None
    # optional registration payload (single-step sign-up)
    username: Any = None
    password: Any = None
    user_type: Any = Field(default=None, alias="userType")


class RegisterIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Any = None
    email: Any = None
    password: Any = None
    user_type: Any = Field(default=None, alias="userType")


class LoginIn(BaseModel):
    email: Any = None
    password: Any = None


class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    username: str
    email: str
    user_type: str = Field(alias="userType")
    onboarded: bool

    @classmethod
    def from_model(cls, u: User) -> "UserOut":
        return cls(id=u.id, username=u.username, email=u.email, user_type=u.user_type, onboarded=u.onboarded)


class OnboardedUserOut(UserOut):
    profile_pic: Optional[str] = Field(default=None, alias="profilePic")
    current_company: Optional[str] = Field(default=None, alias="currentCompany")
    current_position: Optional[str] = Field(default=None, alias="currentPosition")
    about: Optional[str] = None
    batch: Optional[str] = None
    department: Optional[str] = None

    @classmethod
    def from_model(cls, u: User) -> "OnboardedUserOut":
        return cls(
            id=u.id, username=u.username, email=u.email, user_type=u.user_type, onboarded=u.onboarded,
            profile_pic=u.profile_pic, current_company=u.current_company, current_position=u.current_position,
            about=u.about, batch=u.batch, department=u.department,
        )


class ProfileOut(BaseModel):
    """Flattened view the profile page renders."""
    model_config = ConfigDict(populate_by_name=True)

    id: uuid.UUID
    name: str
    username: str
    email: str
    avatar: str
    role: str = ""
    about: str = ""
    bio: str = ""
    batch: str = ""
    department: str = ""
    location: str = ""
    user_type: str = Field(alias="userType")
    onboarded: bool
    initials: str
    avatar_color: str = Field(alias="avatarColor")

    @classmethod
    def from_model(cls, u: User) -> "ProfileOut":
        return cls(
            id=u.id, name=u.username, username=u.username, email=u.email,
            avatar=u.profile_pic or DEFAULT_AVATAR,
            role=u.current_position or "", about=u.about or "", bio=u.about or "",
            batch=u.batch or "", department=u.department or "", location=u.location or "",
            user_type=u.user_type, onboarded=u.onboarded,
            initials=get_initials(u.username), avatar_color=avatar_color(u.username),
        )


class SessionUserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    photo_url: str = Field(alias="photoURL")
    initials: str
    avatar_color: str = Field(alias="avatarColor")

    @classmethod
    def guest(cls) -> "SessionUserOut":
        return cls(name="Guest", photo_url="", initials=get_initials("Guest"), avatar_color=avatar_color("Guest"))

    @classmethod
    def from_model(cls, u: User) -> "SessionUserOut":
        return cls(
            name=u.username, photo_url=u.profile_pic or "",
            initials=get_initials(u.username), avatar_color=avatar_color(u.username),
        )
