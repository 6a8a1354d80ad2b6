# backend/quizora/api/v1/modules.py
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from quizora import crud, schemas
from quizora.api.deps import require_teacher
from quizora.core.responses import success_response
from quizora.db.session import get_db
from quizora.models import Account

router = APIRouter(prefix="/modules", tags=["modules"])


def _out(module, question_count: Optional[int] = None) -> dict:
    data = schemas.ModuleOut.model_validate(module).model_dump()
    if question_count is not None:
        data["question_count"] = question_count
    return data


@router.get("/stats")
def module_stats(teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    return success_response(crud.module_stats(db, teacher.id), "Module statistics retrieved")


@router.get("/")
def list_modules(
    search: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1, le=4),
    semester: Optional[Literal[1, 2]] = None,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    rows = crud.list_modules(db, teacher.id, search=search, year=year, semester=semester)
    return success_response([_out(m, n) for m, n in rows], "Modules retrieved successfully")


@router.post("/")
def create_module(
    module_in: schemas.ModuleCreate,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    module = crud.create_module(db, teacher.id, module_in)
    return success_response(_out(module, 0), "Module created successfully", status.HTTP_201_CREATED)


@router.get("/{module_id}")
def get_module(module_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    module = crud.get_module(db, teacher.id, module_id)
    return success_response(_out(module, crud.active_question_count(db, module.id)), "Module retrieved successfully")


@router.put("/{module_id}")
def update_module(
    module_id: int,
    module_in: schemas.ModuleUpdate,
    teacher: Account = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    module = crud.update_module(db, teacher.id, module_id, module_in)
    return success_response(_out(module), "Module updated successfully")


@router.delete("/{module_id}")
def delete_module(module_id: int, teacher: Account = Depends(require_teacher), db: Session = Depends(get_db)):
    crud.delete_module(db, teacher.id, module_id)
    return success_response({"id": module_id}, "Module deleted successfully")
