from __future__ import annotations

from dataclasses import dataclass, field

from . import persistence
from .models import User, UserRole, new_record_id
from .movement_validation import ClientValidationError, ValidationIssue, coerce_model

DEFAULT_LEADER = User(
    id="1",
    name="Default Leader",
    username="admin",
    role=UserRole.LEADER,
    email="leader@stockmaster.com",
)


@dataclass
class UserDirectory:
    """Known users plus the signed-in session user, persisted per key.

    An empty directory is seeded with a single leader account so a fresh
    install can create the rest.
    """

    repository: persistence.StateRepository
    _users: list[User] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        stored = self.repository.load(persistence.USERS)
        if stored:
            self._users = [coerce_model(row, User, index) for index, row in enumerate(stored)]
        else:
            self._users = [DEFAULT_LEADER]
            self._save()

    @property
    def users(self) -> tuple[User, ...]:
        return tuple(self._users)

    @property
    def current_user(self) -> User | None:
        stored = self.repository.load(persistence.CURRENT_USER)
        return coerce_model(stored, User, None) if stored else None

    def find(self, username: str) -> User | None:
        wanted = username.strip().lower()
        return next((user for user in self._users if user.username.lower() == wanted), None)

    def add_user(self, name: str, username: str, role: UserRole, email: str = "") -> User:
        if not name.strip() or not username.strip():
            raise ClientValidationError([ValidationIssue(None, "username", "name and username are required")])
        if self.find(username) is not None:
            raise ClientValidationError([ValidationIssue(None, "username", f"username {username} is taken")])
        user = User(id=new_record_id(), name=name.strip(), username=username.strip(), role=role, email=email.strip())
        self._users.append(user)
        self._save()
        return user

    def remove_user(self, user_id: str) -> User:
        user = next((candidate for candidate in self._users if candidate.id == user_id), None)
        if user is None:
            raise ClientValidationError([ValidationIssue(None, "id", f"unknown user {user_id}")])
        current = self.current_user
        if current is not None and current.id == user_id:
            raise ClientValidationError([ValidationIssue(None, "id", "cannot remove the signed-in user")])
        self._users.remove(user)
        self._save()
        return user

    def sign_in(self, username: str, role: UserRole) -> User | None:
        user = self.find(username)
        if user is None or user.role is not role:
            return None
        self.repository.save(persistence.CURRENT_USER, user.to_wire())
        return user

    def sign_out(self) -> None:
        self.repository.clear(persistence.CURRENT_USER)

    def _save(self) -> None:
        self.repository.save(persistence.USERS, [user.to_wire() for user in self._users])
