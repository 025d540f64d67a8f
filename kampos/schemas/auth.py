from typing import Optional

from pydantic import BaseModel, EmailStr


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    professor_id: Optional[str] = None
    email: Optional[str] = None


class ProfessorBase(BaseModel):
    name: str
    surname: str
    email: EmailStr
    phone: Optional[str] = None


class ProfessorCreate(ProfessorBase):
    password: str


class ProfessorUpdate(BaseModel):
    name: str
    surname: str
    phone: Optional[str] = None
    password: Optional[str] = None


class ProfessorOut(ProfessorBase):
    id: str
    active: bool = True


class ProfessorRecord(ProfessorOut):
    """Professor as persisted, credentials included."""

    hashed_password: str
