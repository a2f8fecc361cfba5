"""Test configuration and fixtures."""

import os
from concurrent.futures import ThreadPoolExecutor

# The app engine is built at import time; keep it off Postgres during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assessment_agent.auth.access import Identity
from assessment_agent.auth.service import AuthService
from assessment_agent.database import Base, get_db
from assessment_agent.dispatch import GradingDispatcher, GradingQueue
from assessment_agent.models import (
    BaseExample,
    Course,
    CourseEnrollment,
    Question,
    Submission,
    SubmissionStatus,
    SubmissionType,
    User,
    UserRole,
)
from grading import AssessmentVerdict, GradingServiceError


# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "TestPass123!"


@pytest.fixture(scope="session")
def engine():
    """Create test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def connection(engine):
    """One connection per test inside a transaction that is rolled back afterwards."""
    connection = engine.connect()
    transaction = connection.begin()
    yield connection
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_factory(connection):
    """Sessions joined to the test transaction; their commits never reach the database."""
    return sessionmaker(autocommit=False, autoflush=False, bind=connection)


@pytest.fixture
def db_session(session_factory):
    """Create test database session."""
    session = session_factory()
    yield session
    session.close()


def make_user(db_session, email, role, name=None, password=None):
    user = User(email=email, name=name, role=role)
    if password:
        user.set_password(password)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def super_admin(db_session):
    return make_user(db_session, "admin@example.com", UserRole.super_admin, "Super Admin")


@pytest.fixture
def course_admin(db_session):
    return make_user(db_session, "instructor@example.com", UserRole.course_admin, "Course Instructor")


@pytest.fixture
def other_admin(db_session):
    return make_user(db_session, "other.instructor@example.com", UserRole.course_admin, "Other Instructor")


@pytest.fixture
def student(db_session):
    return make_user(db_session, "alice@example.com", UserRole.student, "Alice Johnson")


@pytest.fixture
def other_student(db_session):
    return make_user(db_session, "bob@example.com", UserRole.student, "Bob Smith")


@pytest.fixture
def identity_of():
    return Identity.from_user


@pytest.fixture
def sample_course(db_session, super_admin, course_admin):
    """A course created by the super admin and owned by the course admin."""
    course = Course(
        title="Web Development Fundamentals",
        description="HTML, CSS and JavaScript basics",
        admin_id=course_admin.id,
        created_by_id=super_admin.id,
    )
    db_session.add(course)
    db_session.commit()
    db_session.refresh(course)
    return course


@pytest.fixture
def enrollment(db_session, sample_course, student):
    enrollment = CourseEnrollment(course_id=sample_course.id, student_id=student.id)
    db_session.add(enrollment)
    db_session.commit()
    db_session.refresh(enrollment)
    return enrollment


def make_question(db_session, course, creator, submission_type=SubmissionType.text, title="Declare a constant"):
    question = Question(
        title=title,
        description="Declare a constant named x holding 1.",
        submission_type=submission_type,
        criteria="Use const, not var.",
        course_id=course.id,
        created_by_id=creator.id,
    )
    db_session.add(question)
    db_session.commit()
    db_session.refresh(question)
    return question


@pytest.fixture
def text_question(db_session, sample_course, course_admin):
    return make_question(db_session, sample_course, course_admin)


@pytest.fixture
def base_example(db_session, text_question):
    example = BaseExample(
        question_id=text_question.id,
        content="const x = 1;",
        type=SubmissionType.text,
        example_metadata={"rubric": [{"criterion": "uses const", "points": 60}, {"criterion": "names the binding x", "points": 40}]},
    )
    db_session.add(example)
    db_session.commit()
    db_session.refresh(example)
    return example


def make_submission(db_session, question, student, status=SubmissionStatus.pending, **fields):
    fields.setdefault("content", "var x = 1;")
    submission = Submission(question_id=question.id, student_id=student.id, status=status, **fields)
    db_session.add(submission)
    db_session.commit()
    db_session.refresh(submission)
    return submission


@pytest.fixture
def question_factory(db_session, sample_course, course_admin):
    """Questions of any kind, by default in the sample course."""
    def _make(submission_type=SubmissionType.text, course=None, title="Declare a constant"):
        return make_question(db_session, course or sample_course, course_admin, submission_type, title)
    return _make


@pytest.fixture
def submission_factory(db_session, student):
    def _make(question, owner=None, status=SubmissionStatus.pending, **fields):
        return make_submission(db_session, question, owner or student, status, **fields)
    return _make


@pytest.fixture
def sample_submission(db_session, text_question, base_example, enrollment, student):
    return make_submission(db_session, text_question, student)


class RecordingQueue(GradingQueue):
    """Collects grading jobs instead of running them."""

    def __init__(self):
        self.enqueued = []
        self.batches = []

    def enqueue(self, submission_id):
        self.enqueued.append(submission_id)

    def enqueue_batch(self, submission_ids):
        self.batches.append(list(submission_ids))


@pytest.fixture
def queue():
    return RecordingQueue()


class FakeGrader:
    """Stands in for GradingClient with a canned verdict or error."""

    def __init__(self, verdict=None, error=None):
        self.verdict = verdict or AssessmentVerdict(
            score=82,
            feedback="Correct value, but prefer const over var.",
            confidence=0.9,
            comparison={
                "similarities": ["declares x", "assigns 1"],
                "differences": ["uses var instead of const"],
                "suggestions": ["use const for values that never change"],
            },
        )
        self.error = error
        self.calls = []

    async def assess(self, content, base_example_content, question, submission_kind, tier=None):
        self.calls.append({
            "content": content,
            "base_example": base_example_content,
            "question": question,
            "kind": submission_kind,
            "tier": tier,
        })
        if self.error is not None:
            raise self.error
        return self.verdict


@pytest.fixture
def fake_grader():
    return FakeGrader()


@pytest.fixture
def failing_grader():
    return FakeGrader(error=GradingServiceError("Grading model timed out after 60s"))


@pytest.fixture
def db_executor():
    """One worker thread, so the shared test connection is never used concurrently."""
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="grading-db")
    yield executor
    executor.shutdown(wait=True)


@pytest.fixture
def dispatcher(fake_grader, session_factory, db_executor):
    return GradingDispatcher(
        grader=fake_grader, session_factory=session_factory, batch_delay=0, db_executor=db_executor
    )


@pytest.fixture
def client(db_session, queue):
    """TestClient sharing the test session, with grading jobs recorded on ``queue``."""
    from assessment_agent.main import app
    from assessment_agent.submissions.router import get_grading_queue

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_grading_queue] = lambda: queue
    app.state.grading_queue = queue

    with TestClient(app) as test_client:
        yield test_client

    # Clean up
    app.dependency_overrides.clear()
    app.state.grading_queue = None


@pytest.fixture
def auth_headers(db_session):
    """Bearer headers for a user."""
    def _headers(user):
        token = AuthService(db_session).create_access_token(user)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def password_user(db_session):
    return make_user(db_session, "login@example.com", UserRole.student, "Login User", password=TEST_PASSWORD)
