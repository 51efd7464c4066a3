from __future__ import annotations
from typing import Any, Optional, Type, TypeVar

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.deps import _cookie_opts, get_current_user
from ...auth.jwt import issue_user_token
from ...config import get_settings
from ...db import get_db
from ...domain.schemas.auth import (
    LoginIn, OnboardedUserOut, ProfileOut, RegisterIn, SendOtpIn, UserOut, VerifyOtpIn,
)
from ...models import User
from ...services import accounts
from ...services import otp_workflow
from ...services.mailer import ResendMailer, get_notifier
from ...services.rate_limit import limit_login, limit_otp_request, limit_otp_verify

router = APIRouter(prefix="/api/auth", tags=["auth"])

S = get_settings()

OTP_SENT_MESSAGE = "OTP sent if email reachable"
OTP_DEV_FALLBACK_MESSAGE = "OTP not delivered via email (dev fallback)"
OTP_VERIFIED_MESSAGE = "OTP verified. Submit full registration payload to create account."

M = TypeVar("M", bound=BaseModel)


def set_session_cookie(response: Response, request: Request, token: str) -> None:
    response.set_cookie(value=token, **_cookie_opts(request))


def _user_json(user: User) -> dict:
    return UserOut.from_model(user).model_dump(mode="json", by_alias=True)


def _payload(model: Type[M], body: Any) -> M:
    # a missing or non-object JSON body reads as an empty payload
    return model.model_validate(body if isinstance(body, dict) else {})


@router.post("/send-otp")
async def send_otp(
    request: Request,
    body: Any = Body(None),
    db: AsyncSession = Depends(get_db),
    notifier: ResendMailer = Depends(get_notifier),
):
    await limit_otp_request(request)
    payload = _payload(SendOtpIn, body)
    result = await otp_workflow.issue_code(db, payload.email, notifier=notifier)
    if result.dev_code is not None:
        return {"ok": True, "message": OTP_DEV_FALLBACK_MESSAGE, "otp": result.dev_code}
    # same answer whether or not the mail actually went out
    return {"ok": True, "message": OTP_SENT_MESSAGE}


@router.post("/verify-otp")
async def verify_otp(
    request: Request,
    response: Response,
    body: Any = Body(None),
    db: AsyncSession = Depends(get_db),
):
    await limit_otp_verify(request)
    payload = _payload(VerifyOtpIn, body)
    result = await otp_workflow.verify_code(
        db,
        payload.email,
        payload.otp,
        username=payload.username,
        password=payload.password,
        user_type=payload.user_type,
    )
    if not result.registered:
        return {"ok": True, "message": OTP_VERIFIED_MESSAGE}

    set_session_cookie(response, request, result.token)
    response.status_code = status.HTTP_201_CREATED
    return {
        "message": "User created",
        "token": result.token,
        "user": _user_json(result.user),
        "redirectTo": "/onboarding",
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request, response: Response, body: Any = Body(None), db: AsyncSession = Depends(get_db)
):
    payload = _payload(RegisterIn, body)
    user = await accounts.register(
        db,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        user_type=payload.user_type,
    )
    token = issue_user_token(user)
    set_session_cookie(response, request, token)
    return {
        "message": "User registered successfully",
        "token": token,
        "user": _user_json(user),
        "redirectTo": "/onboarding",
    }


@router.post("/login")
async def login(
    request: Request, response: Response, body: Any = Body(None), db: AsyncSession = Depends(get_db)
):
    await limit_login(request)
    payload = _payload(LoginIn, body)
    user = await accounts.authenticate(db, email=payload.email, password=payload.password)
    token = issue_user_token(user)
    set_session_cookie(response, request, token)
    return {
        "token": token,
        "user": _user_json(user),
        "redirectTo": "/" if user.onboarded else "/onboarding",
    }


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(S.SESSION_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.get("/me")
async def me(current: User = Depends(get_current_user)):
    return {
        "user": OnboardedUserOut.from_model(current).model_dump(mode="json", by_alias=True),
        "profile": ProfileOut.from_model(current).model_dump(mode="json", by_alias=True),
    }


@router.post("/onboarding")
async def onboarding(
    profilePic: Optional[UploadFile] = File(None),
    currentCompany: Optional[str] = Form(None),
    currentPosition: Optional[str] = Form(None),
    about: Optional[str] = Form(None),
    batch: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await accounts.complete_onboarding(
        db,
        current,
        profile_pic=profilePic,
        current_company=currentCompany,
        current_position=currentPosition,
        about=about,
        batch=batch,
        department=department,
    )
    return {
        "message": "Onboarding completed",
        "user": OnboardedUserOut.from_model(user).model_dump(mode="json", by_alias=True),
        "redirectTo": "/",
    }


@router.post("/update")
async def update_profile(
    avatar: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    batch: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    bio: Optional[str] = Form(None),
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await accounts.update_profile(
        db, current, avatar=avatar, name=name, role=role, batch=batch, location=location, bio=bio
    )
    return {
        "message": "Profile updated",
        "profile": ProfileOut.from_model(user).model_dump(mode="json", by_alias=True),
    }
