"""
User roles and the resolved caller identity.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """User role enumeration."""
    GUEST = "GUEST"
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"
    ASSEMBLER = "ASSEMBLER"
    MANAGER = "MANAGER"

    @classmethod
    def parse(cls, value: str | Role | None) -> Role:
        """Parse role name case-insensitively ('admin', 'Admin', 'ADMIN')."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.GUEST
        return cls(str(value).strip().upper())

    @property
    def is_staff(self) -> bool:
        """Admin and Manager run the back office."""
        if self in (Role.ADMIN, Role.MANAGER):
            return True
        if self in (Role.GUEST, Role.CLIENT, Role.ASSEMBLER):
            return False
        raise AssertionError(f"unhandled role {self!r}")


@dataclass(frozen=True)
class Principal:
    """Resolved caller identity."""
    id: int | None
    role: Role

    @classmethod
    def guest(cls) -> Principal:
        return cls(id=None, role=Role.GUEST)

    @property
    def is_authenticated(self) -> bool:
        return self.role is not Role.GUEST and self.id is not None
