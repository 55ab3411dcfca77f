from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class UserInDB(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    is_active: bool
    created_at: datetime
