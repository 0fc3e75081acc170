import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coursehub import models
from coursehub.database import Base, get_db
from coursehub.main import app
from coursehub.security import create_access_token
from coursehub.services import enrollments as enrollment_service
from coursehub.services.questions import RESOURCE_MODELS

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            db.rollback()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.username})}"}


@pytest.fixture
def make_user(db):
    def _make(username, role="student", balance=0.0):
        user = models.User(
            username=username,
            name=username.title(),
            hashed_password="unused",
            role=role,
            wallet_balance=balance,
            wallet_currency="VND",
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("root", "admin")


@pytest.fixture
def instructor(make_user):
    return make_user("prof", "instructor")


@pytest.fixture
def student(make_user):
    return make_user("alice", "student", balance=500.0)


@pytest.fixture
def category(db):
    category = models.Category(name="Programming", slug="programming", type="course")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def make_course(db, instructor, category):
    def _make(title="Python 101", price=0.0, sale_price=0.0, is_free=False, published=True):
        course = models.Course(
            title=title,
            slug=title.lower().replace(" ", "-"),
            instructor_id=instructor.id,
            category_id=category.id,
            price=price,
            sale_price=sale_price,
            currency="VND",
            is_free=is_free,
            is_published=published,
        )
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


SAMPLE_QUESTIONS = [
    ("single_choice", {"options": [
        {"id": 1, "text": "3", "is_correct": False},
        {"id": 2, "text": "4", "is_correct": True},
        {"id": 3, "text": "5", "is_correct": False},
    ]}),
    ("multiple_choice", {"options": [
        {"id": 1, "text": "2", "is_correct": True},
        {"id": 2, "text": "4", "is_correct": False},
        {"id": 3, "text": "7", "is_correct": True},
        {"id": 4, "text": "9", "is_correct": False},
    ]}),
    ("fill_in", {"correct_answers": ["Paris"], "case_sensitive": False}),
]


@pytest.fixture
def make_quiz(db):
    """Build module + quiz lesson + questions directly; returns (lesson, [questions])."""

    def _make(course, questions=SAMPLE_QUESTIONS, pass_score=50):
        module = models.Module(course_id=course.id, title="Basics", position=0)
        quiz = models.LessonQuiz(pass_score=pass_score, shuffle_questions=False)
        db.add_all([module, quiz])
        db.flush()
        lesson = models.Lesson(
            module_id=module.id, course_id=course.id, title="Checkpoint", type="quiz",
            resource_id=quiz.id, position=0,
        )
        db.add(lesson)

        created = []
        for position, (qtype, data) in enumerate(questions):
            resource = RESOURCE_MODELS[qtype](**data)
            db.add(resource)
            db.flush()
            question = models.Question(type=qtype, content=f"Question {position + 1}", resource_id=resource.id)
            db.add(question)
            db.flush()
            quiz.slots.append(models.QuizQuestion(question_id=question.id, position=position))
            created.append(question)
        db.commit()
        db.refresh(lesson)
        return lesson, created

    return _make


@pytest.fixture
def enroll(db):
    def _enroll(user, course):
        enrollment = enrollment_service.enroll(db, user.id, course)
        db.commit()
        db.refresh(enrollment)
        return enrollment

    return _enroll
