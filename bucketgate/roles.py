import enum

from .errors import InvalidArgument

class AuthLevel(enum.IntEnum):
    NONE = 0
    READ_ONLY = 1
    READ_WRITE = 2
    ALL = 3

class Role(str, enum.Enum):
    READ_ONLY = "readOnly"
    READ_WRITE = "readWrite"
    ALL = "all"

    @property
    def level(self) -> AuthLevel:
        return _ROLE_LEVELS[self]

    @classmethod
    def parse(cls, value: str) -> "Role":
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"unknown role: {value!r}")

_ROLE_LEVELS = {
    Role.READ_ONLY: AuthLevel.READ_ONLY,
    Role.READ_WRITE: AuthLevel.READ_WRITE,
    Role.ALL: AuthLevel.ALL,
}

def admits(role: Role, required: AuthLevel) -> bool:
    return role.level >= required
