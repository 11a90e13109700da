"""
Schemas for the state-changing demo forms.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.config import settings


class TransferForm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: float = Field(ge=0, allow_inf_nan=False)


class ChangePasswordForm(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    new_password: str = Field(alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def check_length(cls, v: str) -> str:
        if len(v) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long"
            )
        return v


def format_errors(exc: ValidationError) -> List[dict]:
    """Flatten pydantic errors into {"field", "msg"} pairs for JSON responses."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "msg": error["msg"],
        }
        for error in exc.errors()
    ]
