"""Lookup of user records by display name."""

from .models import UserRecord
from .store import RecordStore


def normalize_username(name: str) -> str:
    """Strip whitespace and one leading '@', then case-fold."""
    name = name.strip()
    if name.startswith("@"):
        name = name[1:]
    return name.casefold()


class NameIndex:
    """Finds users by username by scanning every stored user record.

    Usernames are not unique; when several records share a name the first
    one in store order wins.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def find_by_name(self, name: str) -> UserRecord | None:
        """Return the user whose username matches, ignoring case and '@'."""
        wanted = normalize_username(name)
        if not wanted:
            return None

        for record in self.store.list_users():
            if record.username and record.username.casefold() == wanted:
                return record
        return None
