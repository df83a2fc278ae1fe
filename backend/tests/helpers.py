from datetime import date, datetime, timedelta, timezone

from app.core.security import create_access_token
from app.models.user import User

EXAM_DAY = date(2026, 11, 16)


class RecordingChannel:
    """In-memory stand-in for a websocket channel."""

    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.messages: list[dict] = []

    def push(self, payload: dict) -> bool:
        if not self.accept:
            return False
        self.messages.append(payload)
        return True

    def events(self) -> list[str]:
        return [item["event"] for item in self.messages]


def open_window_now() -> tuple[datetime, datetime]:
    now = datetime.now(timezone.utc)
    return now - timedelta(minutes=10), now + timedelta(minutes=20)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
