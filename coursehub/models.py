import datetime

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship

from .database import Base

ROLES = ("student", "instructor", "admin")
CATEGORY_TYPES = ("course", "quiz")
COURSE_LEVELS = ("beginner", "intermediate", "advanced")
LESSON_TYPES = ("video", "theory", "quiz")
QUESTION_TYPES = ("single_choice", "multiple_choice", "fill_in")
DIFFICULTIES = ("easy", "medium", "hard")
ENROLLMENT_STATUSES = ("active", "completed")
ORDER_STATUSES = ("pending", "completed", "failed", "cancelled", "refunded")
PAYMENT_METHODS = ("wallet", "card", "bank_transfer", "other")
TRANSACTION_TYPES = ("deposit", "payment", "refund", "withdrawal")
CLASSROOM_ROLES = ("student", "admin", "assistant")
MESSAGE_TYPES = ("text", "system")
NOTIFICATION_TYPES = ("system", "promotion", "reminder")


def utcnow():
    return datetime.datetime.utcnow()


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class User(TimestampMixin, Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    name = Column(String, default="")
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="student")  # student / instructor / admin
    avatar = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    # Wallet lives on the user row; only the wallet service writes it
    wallet_balance = Column(Float, default=0, nullable=False)
    wallet_currency = Column(String, default="VND")


class Category(TimestampMixin, Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text, default="")
    type = Column(String, nullable=False)
    icon = Column(String, default="")
    color = Column(String, default="#6B7280")
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)

    subcategories = relationship("Category", lazy="selectin")


class Course(TimestampMixin, Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text, default="")
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    thumbnail_url = Column(String, default="")
    price = Column(Float, default=0)
    sale_price = Column(Float, default=0)
    currency = Column(String, default="VND")
    is_free = Column(Boolean, default=False)
    level = Column(String, default="beginner")
    duration = Column(String, default="")
    tags = Column(JSON, default=list)
    rating = Column(Float, default=0)
    total_ratings = Column(Integer, default=0)
    students = Column(Integer, default=0)
    total_modules = Column(Integer, default=0)
    is_published = Column(Boolean, default=False)
    is_featured = Column(Boolean, default=False)

    instructor = relationship("User", lazy="joined")

    @property
    def pricing(self):
        return {
            "price": self.price,
            "sale_price": self.sale_price,
            "currency": self.currency,
            "is_free": self.is_free,
        }

    @property
    def instructor_name(self):
        return self.instructor.name if self.instructor else ""


class Module(TimestampMixin, Base):
    __tablename__ = "modules"
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    position = Column(Integer, default=0)


class Lesson(TimestampMixin, Base):
    __tablename__ = "lessons"
    id = Column(Integer, primary_key=True, index=True)
    module_id = Column(Integer, ForeignKey("modules.id"), nullable=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    slug = Column(String, default="")
    type = Column(String, nullable=False)
    # Points into lesson_videos / lesson_theories / lesson_quizzes depending on type
    resource_id = Column(Integer, nullable=False)
    is_preview = Column(Boolean, default=False)
    position = Column(Integer, default=0)


class LessonVideo(TimestampMixin, Base):
    __tablename__ = "lesson_videos"
    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, nullable=False)
    url = Column(String, nullable=False)
    duration = Column(Integer, default=0)  # seconds
    transcript = Column(Text, default="")


class LessonTheory(TimestampMixin, Base):
    __tablename__ = "lesson_theories"
    id = Column(Integer, primary_key=True, index=True)
    content_html = Column(Text, default="")
    attachments = Column(JSON, default=list)
    reading_time_minutes = Column(Integer, default=0)


class LessonQuiz(TimestampMixin, Base):
    __tablename__ = "lesson_quizzes"
    id = Column(Integer, primary_key=True, index=True)
    time_limit = Column(Integer, nullable=True)  # minutes
    pass_score = Column(Float, default=50)
    shuffle_questions = Column(Boolean, default=True)

    slots = relationship(
        "QuizQuestion", order_by="QuizQuestion.position", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def question_ids(self):
        return [slot.question_id for slot in self.slots]


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (UniqueConstraint("quiz_id", "question_id"),)
    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey("lesson_quizzes.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    position = Column(Integer, default=0)


class Question(TimestampMixin, Base):
    __tablename__ = "questions"
    id = Column(Integer, primary_key=True, index=True)
    type = Column(String, nullable=False, index=True)
    difficulty = Column(String, default="easy", index=True)
    content = Column(Text, nullable=False)
    image_url = Column(String, default="")
    # Points into question_single_choices / question_multiple_choices / question_fill_ins
    resource_id = Column(Integer, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)


class QuestionSingleChoice(TimestampMixin, Base):
    __tablename__ = "question_single_choices"
    id = Column(Integer, primary_key=True, index=True)
    options = Column(JSON, default=list)  # [{id, text, is_correct, image_url}]
    explanation = Column(Text, default="")


class QuestionMultipleChoice(TimestampMixin, Base):
    __tablename__ = "question_multiple_choices"
    id = Column(Integer, primary_key=True, index=True)
    options = Column(JSON, default=list)
    explanation = Column(Text, default="")


class QuestionFillIn(TimestampMixin, Base):
    __tablename__ = "question_fill_ins"
    id = Column(Integer, primary_key=True, index=True)
    correct_answers = Column(JSON, default=list)
    case_sensitive = Column(Boolean, default=False)
    explanation = Column(Text, default="")


class Attempt(TimestampMixin, Base):
    __tablename__ = "attempts"
    # At most one unsubmitted attempt per (user, quiz)
    __table_args__ = (
        Index(
            "uq_attempts_open", "user_id", "quiz_lesson_id", unique=True,
            sqlite_where=text("submitted_at IS NULL"), postgresql_where=text("submitted_at IS NULL"),
        ),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    quiz_lesson_id = Column(Integer, ForeignKey("lessons.id"), nullable=False, index=True)
    score = Column(Float, default=0)
    is_passed = Column(Boolean, default=False)
    answers = Column(JSON, default=list)  # [{question_id, answer, is_correct}]
    started_at = Column(DateTime, default=utcnow, nullable=False)
    submitted_at = Column(DateTime, nullable=True)

    @property
    def status(self):
        return "submitted" if self.submitted_at else "in_progress"


class Enrollment(TimestampMixin, Base):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id"),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    completed_lessons = Column(JSON, default=list)
    total_lessons = Column(Integer, default=0)
    current_position = Column(JSON, default=dict)  # {module_id, lesson_id, timestamp}
    progress_percent = Column(Float, default=0)
    status = Column(String, default="active")
    last_accessed_at = Column(DateTime, nullable=True)


class Order(TimestampMixin, Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, default="pending", index=True)
    total_amount = Column(Float, nullable=False)
    currency = Column(String, default="VND")
    items = Column(JSON, default=list)  # [{course_id, price}] snapshotted at order time
    payment_method = Column(String, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    @property
    def course_ids(self):
        return [item["course_id"] for item in self.items or []]


class Transaction(TimestampMixin, Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False, index=True)
    amount = Column(Float, nullable=False)  # always positive, direction comes from type
    balance_after = Column(Float, nullable=False)
    reference_id = Column(Integer, nullable=True)  # order id for payment / refund
    description = Column(String, default="")
    wallet_moved = Column(Boolean, default=True, nullable=False)  # false for external payments and bookkeeping rows


class Classroom(TimestampMixin, Base):
    __tablename__ = "classrooms"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    members = relationship("ClassroomMember", cascade="all, delete-orphan", lazy="selectin")
    materials = relationship("ClassroomMaterial", cascade="all, delete-orphan", lazy="selectin")
    course_links = relationship("ClassroomCourse", cascade="all, delete-orphan", lazy="selectin")

    @property
    def assigned_courses(self):
        return [link.course_id for link in self.course_links]


class ClassroomMember(Base):
    __tablename__ = "classroom_members"
    __table_args__ = (UniqueConstraint("classroom_id", "user_id"),)
    id = Column(Integer, primary_key=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, default="student")
    joined_at = Column(DateTime, default=utcnow)


class ClassroomCourse(Base):
    __tablename__ = "classroom_courses"
    __table_args__ = (UniqueConstraint("classroom_id", "course_id"),)
    id = Column(Integer, primary_key=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)


class ClassroomMaterial(Base):
    __tablename__ = "classroom_materials"
    id = Column(Integer, primary_key=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=utcnow)


class Message(TimestampMixin, Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    type = Column(String, default="text")
    read_by = Column(JSON, default=list)
    is_edited = Column(Boolean, default=False)


class Notification(TimestampMixin, Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    type = Column(String, default="system")
    is_read = Column(Boolean, default=False)
