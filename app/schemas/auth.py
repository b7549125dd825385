"""Authentication schemas."""

from pydantic import BaseModel


class AuthContext(BaseModel):
    """Session of the signed-in administrator, handed to each screen."""

    user_id: str
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None
    avatar_url: str | None = None

    model_config = {"frozen": True}
