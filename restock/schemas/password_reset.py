"""
Pydantic schemas for the password reset flow endpoints.
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from restock.core.reset_flow import ResetStep


class ResetEmailIn(BaseModel):
    email: EmailStr


class ResetCodeIn(BaseModel):
    # digits only; the exact length is checked by the flow at submit time
    code: str = Field(..., pattern=r"^[0-9]*$", max_length=12)


class ResetPasswordIn(BaseModel):
    new_password: str = Field(..., max_length=256)
    confirm_password: str = Field(..., max_length=256)


class ResetSessionOut(BaseModel):
    """Session view; never carries passwords"""
    email: str
    code: str
    step: ResetStep
    error: Optional[str] = None
    is_loading: bool

    class Config:
        from_attributes = True


class ResetFlowOut(BaseModel):
    flow_id: str
    session: ResetSessionOut
