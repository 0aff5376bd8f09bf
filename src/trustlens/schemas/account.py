"""Account schemas."""
from pydantic import BaseModel, ConfigDict, Field


class AccountResponse(BaseModel):
    """Authenticated account summary."""

    account_id: str = Field(..., alias="accountId")
    credits: int

    model_config = ConfigDict(populate_by_name=True)
