import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import FormData, UploadFile

from ....domain.entities import CurrentUser
from ....domain.errors import AppError, UploadError, UploadErrorKind
from ....infrastructure.cache import delete_cache_pattern, get_cache, set_cache
from ....infrastructure.db import get_db
from ....infrastructure.metrics import cache_hits_total, cache_misses_total
from ....infrastructure.models import Course, CourseModule, Lesson
from ....infrastructure.repositories import CourseRepository
from ....infrastructure.uploads import store_image
from ..authz import get_optional_user, require_admin
from ..presenters import course_out, dump, pagination
from ..schemas import (
    CourseCreateReq, CourseDetailResp, CourseSearchQuery, CourseUpdateReq, LessonCreateReq, LessonResp,
    ModuleCreateReq, ModuleResp,
)
from ..validation import query_model

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/courses", tags=["courses"])


def _invalidate(course_id: int | None = None):
    delete_cache_pattern("courses:list:*")
    if course_id is not None:
        delete_cache_pattern(f"course:{course_id}:*")


def _get_or_404(repo: CourseRepository, course_id: int) -> Course:
    course = repo.get(course_id)
    if not course:
        raise AppError("Course not found", 404, "COURSE_NOT_FOUND")
    return course


@router.get("")
def list_courses(query: CourseSearchQuery = Depends(query_model(CourseSearchQuery)),
                 user: CurrentUser | None = Depends(get_optional_user),
                 db: Session = Depends(get_db)):
    include_inactive = bool(user and user.is_admin)

    cache_key = (
        f"courses:list:{int(include_inactive)}:{query.page}:{query.limit}:{query.sort_by}:{query.sort_order}"
        f":{query.q or ''}:{query.category or ''}"
    )
    cached = get_cache(cache_key)
    if cached:
        cache_hits_total.inc()
        return cached

    cache_misses_total.inc()
    rows, total = CourseRepository(db).list(
        page=query.page,
        limit=query.limit,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
        q=query.q,
        category=query.category,
        include_inactive=include_inactive,
    )
    result = {"courses": [course_out(c) for c in rows], "pagination": pagination(query.page, query.limit, total)}
    set_cache(cache_key, result)
    return result


@router.get("/{course_id}")
def get_course(course_id: int, user: CurrentUser | None = Depends(get_optional_user),
               db: Session = Depends(get_db)):
    cache_key = f"course:{course_id}:detail"
    detail = get_cache(cache_key)
    if detail:
        cache_hits_total.inc()
    else:
        cache_misses_total.inc()
        course = CourseRepository(db).get_detail(course_id)
        if not course:
            raise AppError("Course not found", 404, "COURSE_NOT_FOUND")
        detail = CourseDetailResp.model_validate(course).model_dump(mode="json", by_alias=True)
        set_cache(cache_key, detail)

    if not detail["isActive"] and not (user and user.is_admin):
        raise AppError("Course not found", 404, "COURSE_NOT_FOUND")
    return {"course": detail}


# --- admin-only catalog management

@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_course(payload: CourseCreateReq, db: Session = Depends(get_db)):
    course = CourseRepository(db).save(Course(**payload.row_fields()))
    _invalidate()
    logger.info("course_created", course_id=course.id)
    return {"message": "Course created successfully", "course": course_out(course)}


@router.put("/{course_id}", dependencies=[Depends(require_admin)])
def update_course(course_id: int, payload: CourseUpdateReq, db: Session = Depends(get_db)):
    repo = CourseRepository(db)
    course = _get_or_404(repo, course_id)
    for field, value in payload.changed_fields().items():
        setattr(course, field, value)
    repo.save(course)
    _invalidate(course_id)
    return {"message": "Course updated successfully", "course": course_out(course)}


@router.post("/{course_id}/modules", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_module(course_id: int, payload: ModuleCreateReq, db: Session = Depends(get_db)):
    repo = CourseRepository(db)
    _get_or_404(repo, course_id)
    module = repo.save(CourseModule(course_id=course_id, **payload.model_dump()))
    _invalidate(course_id)
    return {"message": "Module created successfully", "module": dump(ModuleResp.model_validate(module))}


@router.post("/{course_id}/modules/{module_id}/lessons", status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_admin)])
def create_lesson(course_id: int, module_id: int, payload: LessonCreateReq, db: Session = Depends(get_db)):
    repo = CourseRepository(db)
    if not repo.get_module(course_id, module_id):
        raise AppError("Module not found", 404, "MODULE_NOT_FOUND")
    lesson = repo.save(Lesson(module_id=module_id, **payload.row_fields()))
    _invalidate(course_id)
    return {"message": "Lesson created successfully", "lesson": dump(LessonResp.model_validate(lesson))}


def _single_file(form: FormData, field: str) -> UploadFile:
    files = [(name, value) for name, value in form.multi_items() if isinstance(value, UploadFile)]
    unexpected = [name for name, _ in files if name != field]
    if unexpected:
        raise UploadError(UploadErrorKind.UNEXPECTED_FIELD, f"unexpected file field {unexpected[0]!r}")
    if len(files) > 1:
        raise UploadError(UploadErrorKind.TOO_MANY_FILES, f"{len(files)} files sent, expected one")
    if not files:
        raise RequestValidationError([
            {"type": "missing", "loc": ("body", field), "msg": "Field required", "input": None},
        ])
    return files[0][1]


@router.post("/{course_id}/image", dependencies=[Depends(require_admin)])
async def upload_course_image(course_id: int, request: Request, db: Session = Depends(get_db)):
    repo = CourseRepository(db)
    course = _get_or_404(repo, course_id)
    file = _single_file(await request.form(), field="file")
    payload = await file.read()
    course.image_url = store_image(payload, file.content_type, folder="courses")
    repo.save(course)
    _invalidate(course_id)
    return {"message": "Image uploaded successfully", "imageUrl": course.image_url}
