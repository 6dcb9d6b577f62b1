from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from datetime import timedelta
from typing import Optional

from database import engine, SessionLocal
import models
import lifecycle
import views
from models import (
    User,
    Project,
    TeamMember,
    ProjectComment,
    MemberRole,
    Role,
)
from schemas import (
    UserCreate,
    UserLogin,
    UserResponse,
    TokenResponse,
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    StatusUpdate,
    FeedbackUpdate,
    GradeUpdate,
    CommentCreate,
    CommentResponse,
    TeamMemberIn,
    parse_details,
)
from auth import (
    Actor,
    hash_password,
    verify_password,
    create_access_token,
    get_current_actor,
)
from config import settings
from exceptions import (
    ArchiveError,
    AuthorizationError,
    ConcurrencyConflictError,
    ProjectNotFoundError,
    UserNotFoundError,
    ValidationError,
    error_response,
)
from logging_config import logger
from middleware import RequestLoggingMiddleware

# ----------------------------------------
# Create database tables
# ----------------------------------------
models.Base.metadata.create_all(bind=engine)

# ----------------------------------------
# Create FastAPI app
# ----------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    description="Student project submission, review & archive",
    version="1.0.0"
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------------------
# Error handlers
# ----------------------------------------
@app.exception_handler(ArchiveError)
async def archive_error_handler(request: Request, exc: ArchiveError):
    logger.warning(
        f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}",
        extra={"error_code": exc.code},
    )
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# ----------------------------------------
# Database dependency
# ----------------------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----------------------------------------
# Helpers
# ----------------------------------------
def get_user_by_email(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise UserNotFoundError(email)
    return user


def get_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise ProjectNotFoundError(project_id)
    return project


def get_visible_project(db: Session, project_id: int, actor: Actor) -> Project:
    project = get_project(db, project_id)
    if not views.can_view(actor.role, actor.email, project):
        raise AuthorizationError("You are not a member of this project", role=actor.role.value)
    return project


def build_team(members: list[TeamMemberIn]) -> list[TeamMember]:
    return [
        TeamMember(
            name=m.name.strip(),
            email=m.email,
            role=m.role.value,
            is_primary=m.is_primary,
            position=i,
        )
        for i, m in enumerate(members)
    ]


def advisor_from_team(members: list[TeamMember]) -> Optional[str]:
    for member in members:
        if member.role == MemberRole.lecturer.value:
            return member.email
    return None


def commit_project(db: Session, project: Project) -> Project:
    project_id = project.id
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflictError(project_id)
    db.refresh(project)
    return project


def to_response(project: Project, actor: Actor) -> ProjectResponse:
    response = ProjectResponse.model_validate(project)
    return response.model_copy(update={
        "status_label": views.status_label(project.status, actor.role),
        "grade_letter": lifecycle.letter_grade(project.grade),
    })


# ----------------------------------------
# Root
# ----------------------------------------
@app.get("/")
def root():
    return {"message": "Project archive backend running"}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok"}


# ----------------------------------------
# Signup
# ----------------------------------------
@app.post("/signup")
def signup(user: UserCreate, db: Session = Depends(get_db)):
    existing_user = db.query(User).filter(User.email == user.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        name=user.name,
        email=user.email,
        hashed_password=hash_password(user.password),
        role=Role.student.value,
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.log_auth_event("signup", success=True, user_email=new_user.email)
    return {"message": "User created successfully"}


# ----------------------------------------
# Login
# ----------------------------------------
@app.post("/login", response_model=TokenResponse)
def login(user: UserLogin, db: Session = Depends(get_db)):
    db_user = db.query(User).filter(User.email == user.email).first()

    if not db_user or not verify_password(
        user.password, db_user.hashed_password
    ):
        logger.log_auth_event("login", success=False, user_email=user.email)
        raise HTTPException(status_code=400, detail="Invalid email or password")

    access_token = create_access_token(
        data={"sub": db_user.email, "role": db_user.role},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    logger.log_auth_event("login", success=True, user_email=db_user.email)
    return TokenResponse(access_token=access_token)


# ----------------------------------------
# Current user
# ----------------------------------------
@app.get("/me", response_model=UserResponse)
def read_current_user(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return get_user_by_email(db, actor.email)


@app.put("/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if role not in [r.value for r in Role]:
        raise HTTPException(status_code=400, detail="Invalid role")

    if actor.role != Role.coordinator:
        raise AuthorizationError("Only coordinators can change roles", role=actor.role.value)

    target_user = db.query(User).filter(User.id == user_id).first()
    if not target_user:
        raise UserNotFoundError(user_id)

    target_user.role = role
    db.commit()
    db.refresh(target_user)

    logger.info(f"User {target_user.email} role updated to {role} by {actor.email}")
    return target_user


# ----------------------------------------
# Create project
# ----------------------------------------
@app.post("/projects", response_model=ProjectResponse)
def create_project(
    payload: ProjectCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if actor.role != Role.student:
        raise AuthorizationError("Only students can submit projects", role=actor.role.value)

    owner = get_user_by_email(db, actor.email)
    team = build_team(payload.team_members)

    project = Project(
        title=payload.title,
        project_type=payload.type,
        description=payload.description,
        keywords=payload.keywords,
        team_name=payload.team_name,
        course_code=payload.course_code,
        external_links=payload.external_links,
        files=[f.model_dump() for f in payload.files],
        details=payload.details.model_dump() if payload.details else parse_details(payload.type, None),
        completion_date=payload.completion_date,
        feedback={},
        owner=owner,
        advisor_email=advisor_from_team(team),
        team_members=team,
    )

    lifecycle.start(project, actor.role, submit=payload.submit)

    db.add(project)
    commit_project(db, project)

    logger.log_transition(
        project.id, "submit" if payload.submit else "create", "-",
        project.status.value, actor.role.value,
    )
    return to_response(project, actor)


# ----------------------------------------
# List projects
# ----------------------------------------
@app.get("/projects", response_model=list[ProjectResponse])
def list_projects(
    search: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    projects = db.query(Project).order_by(Project.id).all()
    visible = views.list_visible(actor.role, actor.email, projects, search)
    return [to_response(p, actor) for p in visible]


@app.get("/projects/archive", response_model=list[ProjectResponse])
def list_archive(
    search: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    projects = (
        db.query(Project)
        .filter(Project.status == models.ProjectStatus.approved)
        .order_by(Project.id)
        .all()
    )
    return [to_response(p, actor) for p in views.archive(projects, search)]


@app.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project_detail(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return to_response(get_visible_project(db, project_id, actor), actor)


# ----------------------------------------
# Edit draft
# ----------------------------------------
@app.patch("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: int,
    payload: ProjectUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    project = get_project(db, project_id)
    lifecycle.ensure_editable(project, actor.role, actor.email)
    lifecycle.check_version(project, payload.expected_version)

    fields = payload.model_fields_set

    for name in ("title", "description", "keywords", "external_links"):
        value = getattr(payload, name)
        if name in fields and value is not None:
            setattr(project, name, value)

    for name in ("team_name", "course_code", "completion_date"):
        if name in fields:
            setattr(project, name, getattr(payload, name))

    if "files" in fields and payload.files is not None:
        project.files = [f.model_dump() for f in payload.files]

    if "team_members" in fields and payload.team_members is not None:
        project.team_members = build_team(payload.team_members)
        project.advisor_email = advisor_from_team(project.team_members)

    type_changed = payload.type is not None and payload.type != project.project_type
    if type_changed or payload.details is not None:
        new_type = payload.type or project.project_type
        raw = payload.details
        if raw is None and not type_changed:
            raw = project.details
        try:
            project.details = parse_details(new_type, raw)
        except ValueError as e:
            raise ValidationError(str(e), field="details")
        project.project_type = new_type

    lifecycle.save(project, actor.role, actor.email, submit=payload.submit)

    return to_response(commit_project(db, project), actor)


# ----------------------------------------
# Review actions
# ----------------------------------------
@app.patch("/projects/{project_id}/status", response_model=ProjectResponse)
def update_project_status(
    project_id: int,
    payload: StatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    project = get_project(db, project_id)
    lifecycle.check_version(project, payload.expected_version)
    lifecycle.review(project, actor.role, actor.email, payload.status, payload.feedback)

    return to_response(commit_project(db, project), actor)


@app.patch("/projects/{project_id}/feedback", response_model=ProjectResponse)
def add_project_feedback(
    project_id: int,
    payload: FeedbackUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    project = get_project(db, project_id)
    lifecycle.check_version(project, payload.expected_version)
    lifecycle.add_feedback(project, actor.role, actor.email, payload.feedback)

    return to_response(commit_project(db, project), actor)


@app.patch("/projects/{project_id}/grade", response_model=ProjectResponse)
def update_project_grade(
    project_id: int,
    payload: GradeUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    project = get_project(db, project_id)
    lifecycle.check_version(project, payload.expected_version)
    lifecycle.set_grade(project, actor.role, actor.email, payload.grade)

    return to_response(commit_project(db, project), actor)


# ----------------------------------------
# Comments
# ----------------------------------------
@app.post("/projects/{project_id}/comments", response_model=CommentResponse)
def add_comment(
    project_id: int,
    payload: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    project = get_visible_project(db, project_id, actor)

    comment_text = payload.comment.strip()
    if not comment_text:
        raise ValidationError("Comment text is required", field="comment")

    author = get_user_by_email(db, actor.email)

    comment = ProjectComment(
        project_id=project.id,
        user_id=author.id,
        comment=comment_text,
    )

    db.add(comment)
    db.commit()
    db.refresh(comment)

    return comment


@app.get("/projects/{project_id}/comments", response_model=list[CommentResponse])
def list_comments(
    project_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    project = get_visible_project(db, project_id, actor)

    comments = (
        db.query(ProjectComment)
        .filter(ProjectComment.project_id == project.id)
        .order_by(ProjectComment.created_at, ProjectComment.id)
        .all()
    )

    return comments
