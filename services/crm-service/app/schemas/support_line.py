from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime

class SupportLinePolicy(BaseModel):
    auto_assign: bool = Field(True, description="Assign new tickets to an operator of this line automatically.")
    round_robin: bool = Field(True, description="Pick the least loaded operator instead of the first one.")
    priority: int = Field(0, description="Line priority.")

class SupportLineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=50, description="Unique line code.")
    description: Optional[str] = None
    is_active: bool = True
    max_operators: int = Field(0, ge=0, description="Operator limit, 0 means unlimited.")
    policy: SupportLinePolicy = Field(default_factory=SupportLinePolicy)

class SupportLineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    max_operators: Optional[int] = Field(None, ge=0)
    policy: Optional[SupportLinePolicy] = None

class OperatorAssignRequest(BaseModel):
    user_id: int

class OperatorResponse(BaseModel):
    id: int
    name: str
    email: str
    role_name: Optional[str] = None
    support_line_id: Optional[int] = None
    status: str

    model_config = ConfigDict(from_attributes=True)

class SupportLineResponse(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    is_active: bool
    max_operators: int
    policy: SupportLinePolicy
    operators: List[OperatorResponse] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
