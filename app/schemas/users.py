from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Verified caller identity taken from the bearer token."""

    id: int
    email: str
    is_admin: bool = False


class UserSummary(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    phone: str | None = None
    is_admin: bool

    class Config:
        from_attributes = True
