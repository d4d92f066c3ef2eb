"""The acting party, as supplied by the identity provider."""

from pydantic import BaseModel


class Actor(BaseModel):
    """Pre-authenticated identity performing an operation."""

    id: str
    is_companion: bool = False
    is_admin: bool = False
