from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=8)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self

class UserRead(BaseModel):
    id: int
    name: str
    email: EmailStr
    username: str
    role: str

class UserUpdate(BaseModel):
    """Profile fields a user may change on their own account; omitted fields stay as they are."""
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    refresh_token: Optional[str] = None

class RefreshRequest(BaseModel):
    refresh_token: str
