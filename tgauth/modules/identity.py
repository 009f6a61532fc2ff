"""Identity record supplied by Telegram for an authenticated user."""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

_KNOWN_FIELDS = (
    "id",
    "is_bot",
    "first_name",
    "last_name",
    "username",
    "language_code",
    "photo_url",
)


@dataclass
class Identity:
    """
    Authenticated Telegram principal.

    Passed through the stores unmodified; unknown fields are preserved in
    ``extra`` and flattened back out by ``to_dict()``.
    """

    id: Union[int, str]
    first_name: str = ""
    is_bot: bool = False
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    photo_url: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary for JSON delivery."""
        data = {name: getattr(self, name) for name in _KNOWN_FIELDS}
        data = {key: value for key, value in data.items() if value is not None}
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        """Create from dictionary (e.g., from JSON)."""
        return cls(
            id=data["id"],
            first_name=data.get("first_name", ""),
            is_bot=bool(data.get("is_bot", False)),
            last_name=data.get("last_name"),
            username=data.get("username"),
            language_code=data.get("language_code"),
            photo_url=data.get("photo_url"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )

    def copy(self) -> "Identity":
        """Return an independent value copy."""
        return copy.deepcopy(self)
