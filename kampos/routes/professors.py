from fastapi import APIRouter, Depends, status

from ..auth.dependencies import get_current_active_professor
from ..auth.security import hash_password
from ..database import get_data_manager
from ..schemas.auth import ProfessorOut, ProfessorRecord, ProfessorUpdate
from ..services.data_manager import DataManager
from .auth import _professor_to_out

router = APIRouter()


@router.get("", response_model=list[ProfessorOut])
def list_professors(
    _: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    return [_professor_to_out(p) for p in manager.list_professors()]


@router.put("/me", response_model=ProfessorOut)
def update_professor_me(
    payload: ProfessorUpdate,
    current_professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    current_professor.name = payload.name
    current_professor.surname = payload.surname
    current_professor.phone = payload.phone
    if payload.password:
        current_professor.hashed_password = hash_password(payload.password)
    return _professor_to_out(manager.update_professor(current_professor))


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_professor_me(
    current_professor: ProfessorRecord = Depends(get_current_active_professor),
    manager: DataManager = Depends(get_data_manager),
):
    manager.delete_professor(current_professor.id)
