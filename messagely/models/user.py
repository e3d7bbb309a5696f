"""User models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserSummary(BaseModel):
    """Public contact card, used in user lists and embedded in messages."""

    username: str
    first_name: str
    last_name: str
    phone: str


class UserProfile(UserSummary):
    """A registered user without credential material."""

    join_at: datetime
    last_login_at: Optional[datetime] = None
