from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, EmailStr, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from models import MemberRole, ProjectStatus, ProjectType


# case-insensitive labels accepted on input
PROJECT_TYPE_LOOKUP = {
    "capstone": ProjectType.capstone,
    "academic": ProjectType.capstone,
    "competition work": ProjectType.competition,
    "competition": ProjectType.competition,
    "academic publication": ProjectType.publication,
    "publication": ProjectType.publication,
    "social service": ProjectType.social_service,
    "service": ProjectType.social_service,
    "other": ProjectType.other,
}

PROJECT_STATUS_LOOKUP = {
    "draft": ProjectStatus.draft,
    "under review": ProjectStatus.under_review,
    "underreview": ProjectStatus.under_review,
    "submitted": ProjectStatus.under_review,
    "in review": ProjectStatus.under_review,
    "approved": ProjectStatus.approved,
    "approve": ProjectStatus.approved,
    "completed": ProjectStatus.approved,
    "rejected": ProjectStatus.rejected,
    "reject": ProjectStatus.rejected,
    "deny": ProjectStatus.rejected,
    "denied": ProjectStatus.rejected,
}


def normalize_project_type(value: Any) -> Any:
    if isinstance(value, ProjectType):
        return value.value
    if isinstance(value, str):
        found = PROJECT_TYPE_LOOKUP.get(value.strip().lower())
        return found.value if found else value
    return value


def normalize_project_status(value: Any) -> Any:
    if isinstance(value, str):
        return PROJECT_STATUS_LOOKUP.get(value.strip().lower(), value)
    return value


# ----------------------------------------
# Users
# ----------------------------------------

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ----------------------------------------
# Project type payloads
# ----------------------------------------

class CapstoneDetails(BaseModel):
    type: Literal["Capstone"] = "Capstone"


class CompetitionDetails(BaseModel):
    type: Literal["Competition Work"] = "Competition Work"
    competition_name: Optional[str] = None
    award: Optional[str] = None


class PublicationDetails(BaseModel):
    type: Literal["Academic Publication"] = "Academic Publication"
    venue: Optional[str] = None
    doi: Optional[str] = None


class SocialServiceDetails(BaseModel):
    type: Literal["Social Service"] = "Social Service"
    beneficiary_organization: Optional[str] = None


class OtherDetails(BaseModel):
    type: Literal["Other"] = "Other"


ProjectDetails = Annotated[
    Union[CapstoneDetails, CompetitionDetails, PublicationDetails, SocialServiceDetails, OtherDetails],
    Field(discriminator="type"),
]

_details_adapter = TypeAdapter(ProjectDetails)


# ----------------------------------------
# Project pieces
# ----------------------------------------

class TeamMemberIn(BaseModel):
    name: str = ""
    email: EmailStr
    role: MemberRole = MemberRole.student
    is_primary: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def lower_role(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class TeamMemberResponse(BaseModel):
    name: str
    email: str
    role: str
    is_primary: bool

    class Config:
        from_attributes = True


class FileSummary(BaseModel):
    name: str
    size: Optional[str] = None
    type: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("file name must not be blank")
        return v


def _clean_strings(values: list[str]) -> list[str]:
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def _attach_details_type(data: Any) -> Any:
    """Tag an untagged details payload with the project's type."""
    if not isinstance(data, dict) or "type" not in data:
        return data
    project_type = normalize_project_type(data["type"])
    details = data.get("details")
    if details is None:
        details = {}
    if isinstance(details, dict):
        details = dict(details)
        details["type"] = normalize_project_type(details.get("type", project_type))
    return {**data, "type": project_type, "details": details}


def _check_details_match(project_type, details) -> None:
    if project_type is not None and details is not None and details.type != project_type.value:
        raise ValueError(
            f"details of type '{details.type}' do not match project type '{project_type.value}'"
        )


class ProjectCreate(BaseModel):
    title: str
    type: ProjectType = ProjectType.other
    description: str
    keywords: list[str] = []
    team_name: Optional[str] = None
    course_code: Optional[str] = None
    team_members: list[TeamMemberIn] = []
    external_links: list[str] = []
    files: list[FileSummary] = []
    completion_date: Optional[date] = None
    details: Optional[ProjectDetails] = None
    submit: bool = False

    @model_validator(mode="before")
    @classmethod
    def tag_details(cls, data):
        if isinstance(data, dict) and "type" not in data:
            data = {**data, "type": ProjectType.other}
        return _attach_details_type(data)

    @field_validator("title", "description")
    @classmethod
    def required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("keywords", "external_links")
    @classmethod
    def clean_lists(cls, v: list[str]) -> list[str]:
        return _clean_strings(v)

    @model_validator(mode="after")
    def details_match_type(self):
        _check_details_match(self.type, self.details)
        return self


class ProjectUpdate(BaseModel):
    """Partial edit of a draft; omitted fields keep their current values."""

    title: Optional[str] = None
    type: Optional[ProjectType] = None
    description: Optional[str] = None
    keywords: Optional[list[str]] = None
    team_name: Optional[str] = None
    course_code: Optional[str] = None
    team_members: Optional[list[TeamMemberIn]] = None
    external_links: Optional[list[str]] = None
    files: Optional[list[FileSummary]] = None
    completion_date: Optional[date] = None
    # checked against the effective project type by the route
    details: Optional[dict[str, Any]] = None
    submit: bool = False
    expected_version: Optional[int] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        return normalize_project_type(v)

    @field_validator("title", "description")
    @classmethod
    def required_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("keywords", "external_links")
    @classmethod
    def clean_lists(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else _clean_strings(v)


def parse_details(project_type: ProjectType, details: Optional[dict]) -> dict:
    """Validate a raw details payload for ``project_type`` and return it as a dict.

    Raises ``ValueError`` when the payload is tagged with another type or has
    fields of the wrong shape.
    """
    payload = dict(details or {})
    tagged = normalize_project_type(payload.get("type", project_type))
    if tagged != project_type.value:
        raise ValueError(
            f"details of type '{tagged}' do not match project type '{project_type.value}'"
        )
    payload["type"] = tagged
    try:
        parsed = _details_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValueError(str(e)) from e
    return parsed.model_dump()


class StatusUpdate(BaseModel):
    status: ProjectStatus
    feedback: Optional[str] = None
    expected_version: Optional[int] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return normalize_project_status(v)


class FeedbackUpdate(BaseModel):
    feedback: str
    expected_version: Optional[int] = None


class GradeUpdate(BaseModel):
    # parsed by lifecycle.parse_grade so bad input surfaces as InvalidGradeError
    grade: Any = None
    expected_version: Optional[int] = None


class ProjectResponse(BaseModel):
    id: int
    title: str
    type: ProjectType = Field(validation_alias=AliasChoices("type", "project_type"))
    status: ProjectStatus
    status_label: str = ""
    description: str
    keywords: list[str]
    team_name: Optional[str]
    course_code: Optional[str]
    students: list[str]
    team_members: list[TeamMemberResponse]
    external_links: list[str]
    files: list[FileSummary]
    details: dict
    advisor_email: Optional[str]
    submission_date: Optional[datetime]
    completion_date: Optional[date]
    last_modified: Optional[datetime]
    grade: Optional[float]
    grade_letter: Optional[str] = None
    feedback: dict[str, str]
    version: int

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    comment: str


class CommentResponse(BaseModel):
    id: int
    project_id: int
    user_id: int
    comment: str
    created_at: datetime

    class Config:
        from_attributes = True
