# booking_engine/schemas/token.py
from pydantic import BaseModel
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (user ID)
    role: Optional[str] = None  # "admin" unlocks administrative procedures
    exp: int  # Standard claim for expiration time

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
