from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

class Expense(BaseModel):
    """An expense as seen by API consumers. `fileUrl` is a signed download link."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    title: str
    amount: float
    file_url: Optional[str] = Field(None, alias="fileUrl")

class ExpenseList(BaseModel):
    model_config = ConfigDict(frozen=True)

    expenses: List[Expense] = Field(default_factory=list)

class ExpenseEnvelope(BaseModel):
    expense: Expense

class ExpenseCreate(BaseModel):
    title: str
    amount: float = Field(..., gt=0)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Title is required')
        return v

class ExpensePatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_key: str = Field(..., alias="fileKey", min_length=1)
