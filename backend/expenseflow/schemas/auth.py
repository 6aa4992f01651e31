import uuid

from pydantic import BaseModel

from expenseflow.schemas.common import CamelModel


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(CamelModel):
    id: uuid.UUID
    email: str
    name: str
    role: str
    phone: str | None = None
    bank_name: str | None = None
    bank_account_no: str | None = None
    bank_account_name: str | None = None
    is_active: bool
