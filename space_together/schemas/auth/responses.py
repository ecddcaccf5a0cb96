from pydantic import BaseModel

from space_together.schemas.user.responses import UserResponse


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserResponse

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Account created",
                "token": "eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9...",
                "user": {
                    "id": "650000000000000000000001",
                    "name": "Ada Lovelace",
                    "email": "ada@example.org",
                    "username": "ada_lovelace",
                    "role": "STUDENT"
                }
            }
        }
    }
