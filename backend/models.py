from sqlalchemy import Column, Integer, String, Text, ForeignKey, Boolean, DateTime, Date, Float, JSON
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from database import Base


class Role(str, enum.Enum):
    student = "student"
    advisor = "advisor"
    coordinator = "coordinator"


class ProjectType(str, enum.Enum):
    capstone = "Capstone"
    competition = "Competition Work"
    publication = "Academic Publication"
    social_service = "Social Service"
    other = "Other"


class ProjectStatus(str, enum.Enum):
    draft = "Draft"
    under_review = "Under Review"
    approved = "Approved"
    rejected = "Rejected"


class MemberRole(str, enum.Enum):
    student = "student"
    lecturer = "lecturer"


def _values(enum_cls):
    return [e.value for e in enum_cls]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    role = Column(String, default=Role.student.value)  # student / advisor / coordinator


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    project_type = Column(
        SQLEnum(ProjectType, values_callable=_values, name="project_type"),
        nullable=False,
        default=ProjectType.other,
    )
    status = Column(
        SQLEnum(ProjectStatus, values_callable=_values, name="project_status"),
        nullable=False,
        default=ProjectStatus.draft,
    )
    description = Column(Text, nullable=False, default="")

    keywords = Column(JSON, nullable=False, default=list)
    team_name = Column(String, nullable=True)
    course_code = Column(String, nullable=True)
    external_links = Column(JSON, nullable=False, default=list)
    files = Column(JSON, nullable=False, default=list)

    # type-specific payload, shape decided by project_type
    details = Column(JSON, nullable=False, default=dict)

    submission_date = Column(DateTime, nullable=True)
    completion_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_modified = Column(DateTime, default=datetime.utcnow)

    grade = Column(Float, nullable=True)
    # reviewer role -> accumulated text
    feedback = Column(JSON, nullable=False, default=dict)

    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    advisor_email = Column(String, nullable=True)

    version = Column(Integer, nullable=False)

    owner = relationship("User")
    team_members = relationship(
        "TeamMember",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="TeamMember.position",
    )
    comments = relationship(
        "ProjectComment",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectComment.created_at",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Project {self.id} {self.title!r} {self.status}>"

    @property
    def students(self) -> list[str]:
        """Owner email followed by student team member emails, de-duplicated."""
        emails = []
        if self.owner is not None:
            emails.append(self.owner.email)
        emails.extend(
            m.email for m in self.team_members if m.role == MemberRole.student.value
        )

        seen = set()
        students = []
        for email in emails:
            key = email.lower()
            if key not in seen:
                seen.add(key)
                students.append(email)
        return students


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True, index=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)

    name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False)
    role = Column(String, default=MemberRole.student.value)  # student / lecturer
    is_primary = Column(Boolean, default=False)
    position = Column(Integer, nullable=False, default=0)

    project = relationship("Project", back_populates="team_members")


class ProjectComment(Base):
    __tablename__ = "project_comments"

    id = Column(Integer, primary_key=True, index=True)

    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    comment = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="comments")
    author = relationship("User")
