from pydantic import BaseModel, EmailStr
from multichat.models.enums import UserRole


class UserOut(BaseModel):
    id: str
    email: EmailStr
    is_active: bool
    role: UserRole
