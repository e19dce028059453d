"""
User directory and login session, kept in the key-value store.

This is a mock login flow for a single local user: passwords are hashed
so they are not stored in clear text, but nothing here is meant as real
authentication.
"""
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from .errors import ValidationError, NotFoundError
from .permissions import Role
from .schema import utc_now

logger = logging.getLogger(__name__)

USERS_KEY = "users"
SESSION_KEY = "currentUser"
INITIALIZED_KEY = "appInitialized"

DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_PASSWORD = "admin123"

ACTIVE = "active"
INACTIVE = "inactive"


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name must not be empty")


def _check_email(email: Any) -> None:
    if not isinstance(email, str) or not email.strip() or "@" not in email:
        raise ValidationError(f"Invalid email: {email!r}")


def _check_password(password: Any) -> None:
    if not isinstance(password, str) or not password:
        raise ValidationError("Password must not be empty")


@dataclass
class User:
    """A dashboard user. Tasks refer to users by name only."""
    id: int
    name: str
    email: str
    role: Role = Role.USER
    status: str = ACTIVE
    password_hash: str = ""
    created_by: str = ""
    created_at: str = field(default_factory=lambda: utc_now().isoformat())

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return hmac.compare_digest(self.password_hash, hash_password(password))

    def to_dict(self, include_secret: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": self.created_at,
        }
        if include_secret:
            data["password_hash"] = self.password_hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        status = data.get("status", ACTIVE)
        if status not in (ACTIVE, INACTIVE):
            raise ValueError(f"Invalid user status: {status!r}")
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            email=str(data["email"]),
            role=Role.parse(data.get("role", Role.USER.value)),
            status=status,
            password_hash=data.get("password_hash", ""),
            created_by=data.get("created_by", ""),
            created_at=data.get("created_at") or utc_now().isoformat(),
        )


class UserDirectory:
    """All known users, stored as one JSON list under a single key."""

    def __init__(self, store, key: str = USERS_KEY):
        self.store = store
        self.key = key

    def initialize(self) -> bool:
        """
        Seed the admin account on first run. Returns True if it did.

        Runs once per store: later calls are no-ops even if the admin user
        has since been edited or deactivated.
        """
        if self.store.get(INITIALIZED_KEY):
            return False
        admin = User(
            id=1,
            name="Admin User",
            email=DEFAULT_ADMIN_EMAIL,
            role=Role.ADMIN,
            password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
            created_by="system",
        )
        self._write([admin])
        self.store.set(INITIALIZED_KEY, "true")
        logger.info(f"First run: created admin user {admin.email}")
        return True

    def all_users(self) -> List[User]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            return [User.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            logger.warning(f"Error reading users: {e}")
            return []

    def _write(self, users: List[User]) -> None:
        self.store.set(self.key, json.dumps([u.to_dict() for u in users]))

    def get(self, user_id: int) -> User:
        for user in self.all_users():
            if user.id == user_id:
                return user
        raise NotFoundError(f"User {user_id} not found")

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self.all_users():
            if user.email.lower() == email:
                return user
        return None

    def save_user(self, user: User) -> None:
        """Insert, or replace the user with the same id or email."""
        users = self.all_users()
        for idx, existing in enumerate(users):
            if existing.id == user.id or existing.email.lower() == user.email.lower():
                users[idx] = user
                break
        else:
            users.append(user)
        self._write(users)

    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: Any = Role.USER,
        created_by: str = "",
    ) -> User:
        _check_name(name)
        _check_email(email)
        _check_password(password)
        if self.find_by_email(email):
            raise ValidationError(f"A user with email {email.strip()} already exists")

        users = self.all_users()
        user = User(
            id=max((u.id for u in users), default=0) + 1,
            name=name.strip(),
            email=email.strip(),
            role=Role.parse(role),
            password_hash=hash_password(password),
            created_by=created_by,
        )
        self._write(users + [user])
        logger.info(f"Created user {user.id} ({user.email}, {user.role.value})")
        return user

    def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Any = None,
        password: Optional[str] = None,
    ) -> User:
        """
        Edit a user's profile. Fields left as None keep their value.

        Validation matches create_user(); the email must stay unique among
        the other users. Raises NotFoundError for an unknown id.
        """
        user = self.get(user_id)
        if name is not None:
            _check_name(name)
            user.name = name.strip()
        if email is not None:
            _check_email(email)
            other = self.find_by_email(email)
            if other is not None and other.id != user_id:
                raise ValidationError(f"A user with email {email.strip()} already exists")
            user.email = email.strip()
        if role is not None:
            user.role = Role.parse(role)
        if password is not None:
            _check_password(password)
            user.password_hash = hash_password(password)
        self._replace(user)
        logger.info(f"Updated user {user.id} ({user.email})")
        return user

    def set_status(self, user_id: int, status: str) -> User:
        """Activate or deactivate a user. Inactive users cannot log in."""
        if status not in (ACTIVE, INACTIVE):
            raise ValidationError(f"Invalid user status: {status!r}. Expected {ACTIVE} or {INACTIVE}")
        user = self.get(user_id)
        if user.status != status:
            user.status = status
            self._replace(user)
            logger.info(f"User {user.id} ({user.email}) is now {status}")
        return user

    def toggle_status(self, user_id: int) -> User:
        user = self.get(user_id)
        return self.set_status(user_id, INACTIVE if user.is_active else ACTIVE)

    def delete_user(self, user_id: int) -> bool:
        """Remove a user. Unknown ids are a no-op (returns False)."""
        users = self.all_users()
        remaining = [u for u in users if u.id != user_id]
        if len(remaining) == len(users):
            logger.debug(f"delete_user: {user_id} already gone")
            return False
        self._write(remaining)
        logger.info(f"Deleted user {user_id}")
        return True

    def _replace(self, user: User) -> None:
        self._write([user if u.id == user.id else u for u in self.all_users()])

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Active user matching email and password, or None."""
        user = self.find_by_email(email or "")
        if user is None or not user.is_active or not user.check_password(password or ""):
            return None
        return user


class Session:
    """The logged-in user, remembered in the store without the password hash."""

    def __init__(self, store, key: str = SESSION_KEY):
        self.store = store
        self.key = key

    @property
    def current_user(self) -> Optional[User]:
        raw = self.store.get(self.key)
        if not raw:
            return None
        try:
            return User.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError) as e:
            logger.warning(f"Discarding unreadable session: {e}")
            self.store.delete(self.key)
            return None

    @property
    def is_admin(self) -> bool:
        user = self.current_user
        return user is not None and user.role is Role.ADMIN

    def login(self, user: User) -> None:
        self.store.set(self.key, json.dumps(user.to_dict(include_secret=False)))
        logger.info(f"Logged in {user.email}")

    def logout(self) -> None:
        self.store.delete(self.key)
