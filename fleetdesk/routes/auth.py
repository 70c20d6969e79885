# FleetDesk - Authentication Routes
# Login, logout, the current user and employee accounts

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from fleetdesk.config import get_settings
from fleetdesk.database import get_db
from fleetdesk.dependencies import (
    SESSION_COOKIE_NAME,
    get_client_ip,
    get_current_session,
    get_session_token,
    require_admin,
)
from fleetdesk.logging import get_logger
from fleetdesk.models.employee import Employee
from fleetdesk.services.auth import AuthService, AuthSession
from fleetdesk.services.errors import NotFoundError


settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    session_token: str
    email: str
    full_name: str
    role: str


class SessionOut(BaseModel):
    employee_id: int
    email: str
    full_name: str
    role: str
    is_admin: bool
    is_manager: bool


class EmployeeCreate(BaseModel):
    email: str
    full_name: str
    password: Optional[str] = Field(None, min_length=8)
    role: Literal["employee", "manager", "admin"] = "employee"

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        email = value.strip()
        if "@" not in email:
            raise ValueError("Invalid email format")
        return email


class EmployeeOut(BaseModel):
    employee_id: int
    email: str
    full_name: str
    role: str
    is_active: bool


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Log in with email and password.

    The session token is set as an http-only cookie and also returned so
    API clients can send it as a Bearer token.
    """
    auth = AuthService(db)
    employee, user_session = auth.login(
        payload.email,
        payload.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=user_session.session_token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.session_expire_minutes * 60,
    )
    return LoginResponse(
        session_token=user_session.session_token,
        email=employee.email,
        full_name=employee.full_name,
        role=employee.role,
    )


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """End the current session. Safe to call when not logged in."""
    session_token = get_session_token(request)
    if session_token:
        AuthService(db).logout(session_token)

    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"logged_out": True}


@router.get("/me", response_model=SessionOut)
def me(session: AuthSession = Depends(get_current_session)):
    return SessionOut(
        employee_id=session.employee_id,
        email=session.email,
        full_name=session.full_name,
        role=session.role,
        is_admin=session.is_admin,
        is_manager=session.is_manager,
    )


@router.post("/me/password")
def change_password(
    payload: PasswordChange,
    response: Response,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Change the caller's password. Every session is logged out."""
    employee = db.get(Employee, session.employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")

    AuthService(db).change_password(employee, payload.current_password, payload.new_password)
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"password_changed": True}


@router.post("/employees", response_model=EmployeeOut, status_code=201)
def create_employee(
    payload: EmployeeCreate,
    admin: AuthSession = Depends(require_admin),
    db: Session = Depends(get_db),
):
    employee = AuthService(db).create_employee(
        payload.email,
        payload.full_name,
        password=payload.password,
        role=payload.role,
    )
    db.commit()

    logger.info("employee_created", email=employee.email, role=employee.role, by=admin.email)
    return EmployeeOut(
        employee_id=employee.employee_id,
        email=employee.email,
        full_name=employee.full_name,
        role=employee.role,
        is_active=employee.is_active,
    )
