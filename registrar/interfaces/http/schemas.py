import re
from datetime import date, datetime
from typing import Literal

from pydantic import AnyHttpUrl, BaseModel, EmailStr, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
PHONE_PATTERN = r"^[+]?[\d\s\-()]{10,}$"


def _check_password(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise PydanticCustomError(
            "password_strength",
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )
    return value


def _url(value: AnyHttpUrl | None) -> str | None:
    return str(value) if value is not None else None


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        str_strip_whitespace = True


# --- requests: auth

class LoginReq(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class PasswordChangeReq(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("confirm_password")
    @classmethod
    def matches_new_password(cls, v: str, info: ValidationInfo) -> str:
        new_password = info.data.get("new_password")
        if new_password is not None and v != new_password:
            raise PydanticCustomError("password_mismatch", "Password confirmation does not match new password")
        return v


class ProfileUpdateReq(CamelModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_cleared(cls, v: str | None) -> str | None:
        if v is None:
            raise PydanticCustomError("name_required", "Name cannot be empty")
        return v


# --- requests: registrations and students

class StudentDetailsReq(CamelModel):
    date_of_birth: date | None = None
    gender: Literal["Male", "Female", "Other"] | None = None
    nationality: str | None = Field(default=None, max_length=50)
    address: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=50)
    state: str | None = Field(default=None, max_length=50)
    postal_code: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, max_length=50)
    emergency_contact_name: str | None = Field(default=None, min_length=2, max_length=100)
    emergency_contact_phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    emergency_contact_email: EmailStr | None = None
    previous_education: str | None = Field(default=None, max_length=500)
    work_experience: str | None = Field(default=None, max_length=500)

    @field_validator("date_of_birth")
    @classmethod
    def born_in_the_past(cls, v: date | None) -> date | None:
        if v is not None and v > date.today():
            raise PydanticCustomError("date_max", "Date of birth cannot be in the future")
        return v

    def student_fields(self) -> dict:
        return self.model_dump(include=set(StudentDetailsReq.model_fields), exclude_unset=True)


class StudentRegistrationReq(StudentDetailsReq):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    course_id: int
    message: str | None = Field(default=None, max_length=1000)


class StudentProfileUpdateReq(StudentDetailsReq):
    pass


class RegistrationActionReq(CamelModel):
    action: Literal["approve", "reject"]
    message: str | None = Field(default=None, max_length=500, validate_default=True)

    @field_validator("message")
    @classmethod
    def reason_required_on_reject(cls, v: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("action") != "reject":
            return v
        if not v:
            raise PydanticCustomError(
                "reason_required", "Rejection reason is required when rejecting a registration"
            )
        if len(v) < 10:
            raise PydanticCustomError("reason_too_short", "Rejection reason must be at least 10 characters")
        return v


# --- requests: query parameters

class PaginationQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: str = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


class SearchQuery(PaginationQuery):
    q: str | None = Field(default=None, min_length=1, max_length=100)
    category: str | None = Field(default=None, max_length=50)
    status: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    @field_validator("end_date")
    @classmethod
    def not_before_start(cls, v: date | None, info: ValidationInfo) -> date | None:
        start = info.data.get("start_date")
        if v is not None and start is not None and v < start:
            raise PydanticCustomError("date_order", "endDate must not precede startDate")
        return v


class StudentSearchQuery(SearchQuery):
    sort_by: Literal["createdAt", "email", "firstName", "lastName"] = "createdAt"


class CourseSearchQuery(SearchQuery):
    sort_by: Literal["createdAt", "title", "price"] = "createdAt"


class RegistrationSearchQuery(SearchQuery):
    sort_by: Literal["createdAt", "reviewedAt", "status"] = "createdAt"


# --- requests: catalog and progress

class CourseCreateReq(CamelModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    category: str = Field(max_length=100)
    level: Literal["Beginner", "Intermediate", "Advanced", "Foundation", "Professional"] = "Beginner"
    duration: str = Field(max_length=100)
    price: float = Field(ge=0)
    currency: str = Field(default="NGN", min_length=3, max_length=3)
    image_url: AnyHttpUrl | None = None
    max_students: int | None = Field(default=None, ge=1)
    prerequisites: str | None = Field(default=None, max_length=500)
    is_active: bool = True

    def row_fields(self) -> dict:
        data = self.model_dump()
        data["image_url"] = _url(self.image_url)
        return data


class CourseUpdateReq(CamelModel):
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=2000)
    category: str | None = Field(default=None, max_length=100)
    level: Literal["Beginner", "Intermediate", "Advanced", "Foundation", "Professional"] | None = None
    duration: str | None = Field(default=None, max_length=100)
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    image_url: AnyHttpUrl | None = None
    max_students: int | None = Field(default=None, ge=1)
    prerequisites: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None

    def changed_fields(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        if "image_url" in data:
            data["image_url"] = _url(self.image_url)
        return data


class ModuleCreateReq(CamelModel):
    title: str = Field(min_length=3, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    order_index: int = Field(ge=0)


class LessonCreateReq(CamelModel):
    title: str = Field(min_length=3, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    content: str | None = Field(default=None, max_length=10000)
    video_url: AnyHttpUrl | None = None
    duration: str | None = Field(default=None, max_length=50)
    order_index: int = Field(ge=0)
    resources: list[AnyHttpUrl] = Field(default_factory=list)

    def row_fields(self) -> dict:
        data = self.model_dump()
        data["video_url"] = _url(self.video_url)
        data["resources"] = [str(r) for r in self.resources]
        return data


class ProgressUpdateReq(CamelModel):
    lesson_id: int
    is_completed: bool
    time_spent: int = Field(default=0, ge=0)


class AdminUserCreateReq(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    department: str | None = Field(default=None, max_length=100)
    permissions: list[str] = Field(default_factory=list)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return _check_password(v)


# --- responses

class PaginationResp(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class UserResp(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    role: str
    status: str
    created_at: datetime


class StudentResp(CamelModel):
    id: int
    date_of_birth: date | None = None
    gender: str | None = None
    nationality: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_email: str | None = None
    previous_education: str | None = None
    work_experience: str | None = None
    created_at: datetime


class AdminUserResp(CamelModel):
    id: int
    department: str | None = None
    permissions: list[str] = []


class CourseSummaryResp(CamelModel):
    id: int
    title: str
    category: str
    level: str
    price: float
    currency: str


class CourseResp(CourseSummaryResp):
    description: str
    duration: str
    image_url: str | None = None
    max_students: int | None = None
    prerequisites: str | None = None
    is_active: bool
    created_at: datetime
    total_lessons: int = 0


class LessonResp(CamelModel):
    id: int
    module_id: int
    title: str
    description: str | None = None
    content: str | None = None
    video_url: str | None = None
    duration: str | None = None
    order_index: int
    resources: list[str] = []


class ModuleResp(CamelModel):
    id: int
    course_id: int
    title: str
    description: str | None = None
    order_index: int
    lessons: list[LessonResp] = []


class CourseDetailResp(CourseResp):
    modules: list[ModuleResp] = []


class ProgressResp(CamelModel):
    id: int
    course_id: int
    total_lessons: int
    completed_lessons: int
    progress_percent: float
    total_time_spent: int
    last_accessed_at: datetime | None = None


class LessonProgressResp(CamelModel):
    lesson_id: int
    is_completed: bool
    completed_at: datetime | None = None
    time_spent: int


class TokenResp(CamelModel):
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    user: dict
