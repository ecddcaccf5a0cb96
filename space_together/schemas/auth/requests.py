import re

from pydantic import BaseModel, EmailStr, Field, field_validator


NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-'\.,]*$")


# Register Request Model - control-plane sign up
class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=4, max_length=128)

    @field_validator("name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if not NAME_PATTERN.match(v):
            invalid = "".join(sorted({c for c in v if not NAME_PATTERN.match(c)}))
            raise ValueError(f"contains disallowed characters [{invalid}]")
        if len(v.split()) < 2:
            raise ValueError(
                "Name is valid but not a full name. Please provide both first and last names."
            )
        return v


# Login Request Model - For logging in a user
class LoginRequest(BaseModel):
    email: EmailStr
    password: str
