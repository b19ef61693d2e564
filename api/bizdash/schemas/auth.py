from pydantic import Field

from bizdash.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=150)
    email: str = Field(max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6, max_length=128)
    mobile_no: str | None = Field(default=None, max_length=32)


class UserOut(CamelModel):
    id: str
    username: str
    email: str
    mobile_no: str | None = None


class LoginRequest(CamelModel):
    username: str
    password: str


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    username: str
