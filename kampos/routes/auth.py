from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from ..auth.dependencies import authenticate_professor, get_current_active_professor
from ..auth.security import create_professor_token
from ..database import get_data_manager
from ..schemas.auth import ProfessorCreate, ProfessorOut, ProfessorRecord, Token
from ..services.data_manager import DataManager

router = APIRouter()


def _professor_to_out(professor: ProfessorRecord) -> ProfessorOut:
    return ProfessorOut.model_validate(professor.model_dump(exclude={"hashed_password"}))


@router.post("/register", response_model=ProfessorOut, status_code=status.HTTP_201_CREATED)
def register_professor(
    payload: ProfessorCreate,
    manager: DataManager = Depends(get_data_manager),
):
    return _professor_to_out(manager.register_professor(payload))


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    manager: DataManager = Depends(get_data_manager),
):
    # the form's username field carries the professor's email
    professor = authenticate_professor(manager, form_data.username, form_data.password)
    if not professor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(access_token=create_professor_token(professor.id, professor.email))


@router.get("/me", response_model=ProfessorOut)
def read_professor_me(current_professor: ProfessorRecord = Depends(get_current_active_professor)):
    return _professor_to_out(current_professor)
