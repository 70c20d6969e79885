# FleetDesk - Authentication Service
# Password hashing, session management, login/logout

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
import secrets

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from fleetdesk.config import get_settings
from fleetdesk.logging import get_logger
from fleetdesk.models.base import utcnow
from fleetdesk.models.employee import Employee
from fleetdesk.models.user_session import UserSession


settings = get_settings()
logger = get_logger(__name__)

# Password hashing configuration
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

# Actor name recorded by background jobs
SYSTEM_ACTOR = "system"


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class AuthorizationError(Exception):
    """Raised when user lacks permission."""
    pass


@dataclass(frozen=True)
class AuthSession:
    """
    The authenticated caller, resolved once per request.

    Services receive this explicitly instead of looking up a current user.
    """

    employee_id: int
    email: str
    full_name: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_manager(self) -> bool:
        return self.role in ("manager", "admin")

    @classmethod
    def from_employee(cls, employee: Employee) -> "AuthSession":
        return cls(
            employee_id=employee.employee_id,
            email=employee.email,
            full_name=employee.full_name,
            role=employee.role,
        )


# Caller identity for scheduled jobs
SYSTEM_SESSION = AuthSession(employee_id=0, email=SYSTEM_ACTOR, full_name="System", role="admin")


def require_admin_session(session: AuthSession, action: str = "perform this action") -> None:
    """Raise AuthorizationError unless the caller is an admin."""
    if not session.is_admin:
        raise AuthorizationError(f"Admin access required to {action}")


class AuthService:
    """
    Authentication service for login, logout, and session management.

    Usage:
        auth = AuthService(db)

        employee, user_session = auth.login("anna@example.se", "secret")
        session = auth.validate_session(user_session.session_token)
        auth.logout(user_session.session_token)

    Sessions are stored in the database for easy invalidation.
    """

    def __init__(self, db: Session):
        self.db = db

    def hash_password(self, plain_password: str) -> str:
        return pwd_context.hash(plain_password)

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """Returns True if password matches, False otherwise (including malformed hashes)."""
        if not hashed_password:
            return False
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            return False

    def authenticate(self, email: str, password: str) -> Employee:
        """
        Authenticate a user by email and password.

        Raises:
            AuthenticationError: If credentials are invalid or account is inactive
        """
        employee = self.db.execute(
            select(Employee).where(Employee.email == email.strip().lower())
        ).scalar_one_or_none()

        if not employee:
            # Don't reveal whether the account exists
            raise AuthenticationError("Invalid email or password")

        if not employee.is_active:
            raise AuthenticationError("Account is inactive")

        if not employee.password_hash:
            raise AuthenticationError("Account has no password set")

        if not self.verify_password(password, employee.password_hash):
            raise AuthenticationError("Invalid email or password")

        return employee

    def generate_session_token(self) -> str:
        """64-character hex string (256 bits of entropy)."""
        return secrets.token_hex(32)

    def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> tuple[Employee, UserSession]:
        """
        Authenticate user and create a new session.

        Raises:
            AuthenticationError: If credentials are invalid
        """
        employee = self.authenticate(email, password)

        now = utcnow()
        user_session = UserSession(
            employee_id=employee.employee_id,
            session_token=self.generate_session_token(),
            expires_at=now + timedelta(minutes=settings.session_expire_minutes),
            created_at=now,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )

        self.db.add(user_session)
        self.db.commit()

        logger.info("login", email=employee.email, session_id=user_session.session_id)
        return employee, user_session

    def validate_session(self, session_token: str) -> Optional[AuthSession]:
        """
        Validate a session token and return the caller's AuthSession.

        Returns None for unknown, inactive or expired tokens.
        """
        user_session = self.db.execute(
            select(UserSession)
            .where(UserSession.session_token == session_token)
            .where(UserSession.is_active == True)  # noqa: E712
        ).scalar_one_or_none()

        if not user_session:
            return None

        if user_session.is_expired:
            user_session.is_active = False
            self.db.commit()
            return None

        employee = self.db.execute(
            select(Employee)
            .where(Employee.employee_id == user_session.employee_id)
            .where(Employee.is_active == True)  # noqa: E712
        ).scalar_one_or_none()

        if not employee:
            return None

        user_session.last_activity_at = utcnow()
        self.db.commit()

        return AuthSession.from_employee(employee)

    def logout(self, session_token: str) -> bool:
        """Invalidate a session. Returns False if the token is unknown."""
        user_session = self.db.execute(
            select(UserSession).where(UserSession.session_token == session_token)
        ).scalar_one_or_none()

        if not user_session:
            return False

        user_session.is_active = False
        user_session.logged_out_at = utcnow()
        self.db.commit()

        return True

    def logout_all_sessions(self, employee_id: int) -> int:
        """Invalidate all sessions for an employee. Returns how many were closed."""
        sessions = self.db.execute(
            select(UserSession)
            .where(UserSession.employee_id == employee_id)
            .where(UserSession.is_active == True)  # noqa: E712
        ).scalars().all()

        now = utcnow()
        for user_session in sessions:
            user_session.is_active = False
            user_session.logged_out_at = now

        self.db.commit()
        return len(sessions)

    def create_employee(
        self,
        email: str,
        full_name: str,
        password: Optional[str] = None,
        role: str = "employee",
    ) -> Employee:
        """Create an employee account (used by admin routes and the db script)."""
        email = email.strip().lower()
        existing = self.db.execute(
            select(Employee).where(Employee.email == email)
        ).scalar_one_or_none()
        if existing:
            raise ValueError(f"Employee {email} already exists")

        employee = Employee(
            email=email,
            full_name=full_name.strip(),
            role=role,
            password_hash=self.hash_password(password) if password else None,
        )
        self.db.add(employee)
        self.db.flush()
        return employee

    def set_password(self, employee: Employee, new_password: str) -> None:
        employee.password_hash = self.hash_password(new_password)
        self.db.commit()

    def change_password(
        self,
        employee: Employee,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Change an employee's password (requires current password).

        Raises:
            AuthenticationError: If current password is wrong
        """
        if not self.verify_password(current_password, employee.password_hash):
            raise AuthenticationError("Current password is incorrect")

        self.set_password(employee, new_password)
        self.logout_all_sessions(employee.employee_id)
