from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from ..database import get_data_manager
from ..schemas.auth import ProfessorRecord
from ..services.data_manager import DataManager
from .security import read_professor_token, verify_password


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def authenticate_professor(manager: DataManager, email: str, password: str) -> ProfessorRecord | None:
    professor = manager.get_professor_by_email(email)
    if not professor or not verify_password(password, professor.hashed_password):
        return None
    return professor


def get_current_professor(
    token: str = Depends(oauth2_scheme), manager: DataManager = Depends(get_data_manager)
) -> ProfessorRecord:
    token_data = read_professor_token(token)
    if token_data is None or token_data.professor_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    professor = manager.get_professor(token_data.professor_id)
    if professor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Professor not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return professor


def get_current_active_professor(
    current_professor: ProfessorRecord = Depends(get_current_professor),
) -> ProfessorRecord:
    if not current_professor.active:
        raise HTTPException(status_code=400, detail="Inactive professor")
    return current_professor
