"""
Project Archive - test configuration and fixtures
"""
import os
from typing import Generator

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set testing environment before the app modules read settings
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['ENVIRONMENT'] = 'development'
os.environ['LOG_LEVEL'] = 'WARNING'

from main import app, get_db
from database import Base
from models import (
    MemberRole,
    Project,
    ProjectStatus,
    ProjectType,
    Role,
    TeamMember,
    User,
)
from auth import create_access_token, hash_password

fake = Faker()

ADVISOR_EMAIL = 'advisor@example.edu'

test_engine = create_engine(
    'sqlite://',
    connect_args={'check_same_thread': False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Fresh schema and session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        # requests share one session here; undo whatever a failed request left behind
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session):
    def _make_user(role: Role = Role.student, email: str = None, password: str = 'testpassword123') -> User:
        user = User(
            name=fake.name(),
            email=email or fake.unique.email(),
            hashed_password=hash_password(password),
            role=role.value,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user


@pytest.fixture
def student(make_user) -> User:
    return make_user(Role.student)


@pytest.fixture
def other_student(make_user) -> User:
    return make_user(Role.student)


@pytest.fixture
def advisor(make_user) -> User:
    return make_user(Role.advisor)


@pytest.fixture
def coordinator(make_user) -> User:
    return make_user(Role.coordinator)


def auth_headers(user: User) -> dict:
    token = create_access_token({'sub': user.email, 'role': user.role})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def student_headers(student: User) -> dict:
    return auth_headers(student)


@pytest.fixture
def advisor_headers(advisor: User) -> dict:
    return auth_headers(advisor)


@pytest.fixture
def coordinator_headers(coordinator: User) -> dict:
    return auth_headers(coordinator)


def member(email: str, role: MemberRole = MemberRole.student, primary: bool = False,
           position: int = 0) -> TeamMember:
    return TeamMember(
        name=fake.name(),
        email=email,
        role=role.value,
        is_primary=primary,
        position=position,
    )


@pytest.fixture
def make_project():
    """Build an unsaved project for the pure lifecycle/view tests"""
    counter = {'id': 0}

    def _make_project(status: ProjectStatus = ProjectStatus.draft, members=None,
                      owner_email: str = 'owner@example.edu', title: str = None,
                      description: str = '', course_code: str = None,
                      advisor_email: str = ADVISOR_EMAIL) -> Project:
        counter['id'] += 1
        return Project(
            id=counter['id'],
            title=title or fake.sentence(nb_words=3),
            project_type=ProjectType.capstone,
            status=status,
            description=description,
            course_code=course_code,
            keywords=[],
            external_links=[],
            files=[],
            details={'type': ProjectType.capstone.value},
            feedback={},
            owner=User(name='Owner', email=owner_email, hashed_password='x', role=Role.student.value),
            team_members=list(members or []),
            advisor_email=advisor_email,
            version=1,
        )
    return _make_project


def project_payload(**overrides) -> dict:
    payload = {
        'title': fake.sentence(nb_words=4),
        'type': 'Capstone',
        'description': fake.text(max_nb_chars=200),
        'keywords': ['ai', 'health'],
        'team_name': fake.company(),
        'course_code': 'CS499',
        'team_members': [],
        'external_links': ['https://github.com/example/repo'],
        'files': [{'name': 'report.pdf', 'size': '1.2 MB', 'type': 'application/pdf'}],
    }
    payload.update(overrides)
    return payload


def advisor_team(advisor: User, lead_email: str = 'lead@example.edu') -> list:
    """Team payload with a primary student and ``advisor`` as the lecturer"""
    return [
        {'name': 'Lead', 'email': lead_email, 'role': 'student', 'is_primary': True},
        {'name': advisor.name, 'email': advisor.email, 'role': 'lecturer'},
    ]
