import datetime
from typing import Annotated, Any, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field

T = TypeVar("T")


class ORMBase(BaseModel):
    class Config:
        from_attributes = True


class Page(BaseModel, Generic[T]):
    results: List[T]
    page: int
    limit: int
    totalPages: int
    totalResults: int


# --- users ---

class UserCreate(BaseModel):
    username: str = Field(min_length=3)
    password: str = Field(min_length=6)
    email: Optional[str] = None
    name: str = ""


class LoginIn(BaseModel):
    username: str
    password: str


class UserOut(ORMBase):
    id: int
    username: str
    email: Optional[str] = None
    name: str = ""
    role: str
    avatar: Optional[str] = None
    is_active: bool = True
    wallet_balance: float = 0
    wallet_currency: str = "VND"


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)


class AdminUserCreate(UserCreate):
    role: Literal["student", "instructor", "admin"] = "student"
    is_active: bool = True


class AdminUserUpdate(UserUpdate):
    role: Optional[Literal["student", "instructor", "admin"]] = None
    is_active: Optional[bool] = None


class RoleIn(BaseModel):
    role: Literal["student", "instructor", "admin"]


class WalletAdjustIn(BaseModel):
    amount: float = Field(gt=0)
    operation: Literal["add", "subtract"]
    description: str = ""


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


# --- categories ---

class CategoryCreate(BaseModel):
    name: str
    slug: str
    type: Literal["course", "quiz"]
    description: str = ""
    icon: str = ""
    color: str = "#6B7280"
    is_active: bool = True
    sort_order: int = 0
    parent_id: Optional[int] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    type: Optional[Literal["course", "quiz"]] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    parent_id: Optional[int] = None


class CategoryBrief(ORMBase):
    id: int
    name: str
    slug: str
    type: str
    is_active: bool


class CategoryOut(CategoryBrief):
    description: str = ""
    icon: str = ""
    color: str = ""
    sort_order: int = 0
    parent_id: Optional[int] = None
    subcategories: List[CategoryBrief] = []


class SortOrderIn(BaseModel):
    sort_order: int


# --- courses ---

class Pricing(BaseModel):
    price: float = Field(default=0, ge=0)
    sale_price: float = Field(default=0, ge=0)
    currency: str = "VND"
    is_free: bool = False


class CourseCreate(BaseModel):
    title: str
    slug: str
    category_id: int
    description: str = ""
    thumbnail_url: str = ""
    pricing: Pricing = Pricing()
    level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    duration: str = ""
    tags: List[str] = []


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    pricing: Optional[Pricing] = None
    level: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    duration: Optional[str] = None
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None


class CourseOut(ORMBase):
    id: int
    title: str
    slug: str
    description: str = ""
    instructor_id: int
    instructor_name: str = ""
    category_id: int
    thumbnail_url: str = ""
    pricing: Pricing
    level: str
    duration: str = ""
    tags: List[str] = []
    rating: float = 0
    total_ratings: int = 0
    students: int = 0
    total_modules: int = 0
    is_published: bool
    is_featured: bool = False
    created_at: datetime.datetime


class RatingIn(BaseModel):
    rating: float = Field(ge=1, le=5)


# --- modules ---

class ModuleCreate(BaseModel):
    course_id: int
    title: str


class ModuleUpdate(BaseModel):
    title: Optional[str] = None


class ModuleOut(ORMBase):
    id: int
    course_id: int
    title: str
    position: int


class LessonIdIn(BaseModel):
    lesson_id: int


class ReorderIn(BaseModel):
    lesson_ids: List[int]


# --- lessons ---

class LessonBase(BaseModel):
    module_id: int
    title: str
    slug: str = ""
    is_preview: bool = False


class Attachment(BaseModel):
    name: str
    url: str


class VideoLessonCreate(LessonBase):
    type: Literal["video"] = "video"
    provider: Literal["youtube", "vimeo"]
    url: str
    duration: int = Field(default=0, ge=0)
    transcript: str = ""


class TheoryLessonCreate(LessonBase):
    type: Literal["theory"] = "theory"
    content_html: str
    attachments: List[Attachment] = []
    reading_time_minutes: int = Field(default=0, ge=0)


class QuizLessonCreate(LessonBase):
    type: Literal["quiz"] = "quiz"
    time_limit: Optional[int] = Field(default=None, ge=1)
    pass_score: float = Field(default=50, ge=0, le=100)
    shuffle_questions: bool = True


LessonCreate = Annotated[
    Union[VideoLessonCreate, TheoryLessonCreate, QuizLessonCreate], Field(discriminator="type")
]


class VideoResourceUpdate(BaseModel):
    provider: Optional[Literal["youtube", "vimeo"]] = None
    url: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0)
    transcript: Optional[str] = None


class TheoryResourceUpdate(BaseModel):
    content_html: Optional[str] = None
    attachments: Optional[List[Attachment]] = None
    reading_time_minutes: Optional[int] = Field(default=None, ge=0)


class QuizResourceUpdate(BaseModel):
    time_limit: Optional[int] = Field(default=None, ge=1)
    pass_score: Optional[float] = Field(default=None, ge=0, le=100)
    shuffle_questions: Optional[bool] = None


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    is_preview: Optional[bool] = None
    # checked against the lesson's own type in the service
    resource: Optional[dict] = None


class LessonOut(ORMBase):
    id: int
    module_id: Optional[int] = None
    course_id: int
    title: str
    slug: str = ""
    type: str
    resource_id: int
    is_preview: bool
    position: int


class LessonContentOut(BaseModel):
    lesson: LessonOut
    resource: Optional[dict] = None


class PreviewIn(BaseModel):
    is_preview: bool


# --- questions ---

class OptionIn(BaseModel):
    id: int
    text: str
    is_correct: bool = False
    image_url: str = ""


class QuestionBase(BaseModel):
    content: str
    difficulty: Literal["easy", "medium", "hard"] = "easy"
    image_url: str = ""
    explanation: str = ""


class SingleChoiceCreate(QuestionBase):
    type: Literal["single_choice"] = "single_choice"
    options: List[OptionIn]


class MultipleChoiceCreate(QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[OptionIn]


class FillInCreate(QuestionBase):
    type: Literal["fill_in"] = "fill_in"
    correct_answers: List[str]
    case_sensitive: bool = False


QuestionCreate = Annotated[
    Union[SingleChoiceCreate, MultipleChoiceCreate, FillInCreate], Field(discriminator="type")
]


class QuestionUpdate(BaseModel):
    content: Optional[str] = None
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    image_url: Optional[str] = None
    resource: Optional[dict] = None


class QuestionOut(ORMBase):
    id: int
    type: str
    difficulty: str
    content: str
    image_url: str = ""
    resource_id: int
    created_at: datetime.datetime


class QuestionDetailOut(BaseModel):
    question: QuestionOut
    detail: Optional[dict] = None


class AnswerCheckIn(BaseModel):
    answer: Any = None


class AnswerCheckOut(BaseModel):
    question_id: int
    is_correct: bool
    correct_answer: Any = None
    explanation: str = ""
    user_answer: Any = None


class QuestionIdsIn(BaseModel):
    question_ids: List[int] = Field(min_length=1)


# --- attempts ---

class AttemptStart(BaseModel):
    quiz_lesson_id: int


class AnswerIn(BaseModel):
    question_id: int
    answer: Any = None


class AttemptSubmit(BaseModel):
    answers: List[AnswerIn] = []


class AttemptOut(ORMBase):
    id: int
    user_id: int
    quiz_lesson_id: int
    score: float
    is_passed: bool
    answers: List[dict] = []
    status: str
    started_at: datetime.datetime
    submitted_at: Optional[datetime.datetime] = None


# --- enrollments ---

class EnrollmentCreate(BaseModel):
    course_id: int


class Position(BaseModel):
    module_id: Optional[int] = None
    lesson_id: Optional[int] = None
    timestamp: float = 0


class EnrollmentUpdate(BaseModel):
    status: Optional[Literal["active", "completed"]] = None
    current_position: Optional[Position] = None


class CompleteLessonIn(BaseModel):
    lesson_id: int


class EnrollmentOut(ORMBase):
    id: int
    user_id: int
    course_id: int
    completed_lessons: List[int] = []
    total_lessons: int = 0
    current_position: dict = {}
    progress_percent: float
    status: str
    last_accessed_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime


# --- orders ---

class OrderCreate(BaseModel):
    course_ids: List[int] = Field(min_length=1)
    payment_method: Literal["wallet", "card", "bank_transfer", "other"] = "wallet"


class OrderUpdate(BaseModel):
    # completed and refunded are only reached through pay, process and refund
    status: Optional[Literal["pending", "failed", "cancelled"]] = None
    payment_method: Optional[Literal["wallet", "card", "bank_transfer", "other"]] = None


class OrderItemOut(BaseModel):
    course_id: int
    price: float


class OrderOut(ORMBase):
    id: int
    code: str
    user_id: int
    status: str
    total_amount: float
    currency: str
    items: List[OrderItemOut]
    payment_method: str
    paid_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime


class RefundIn(BaseModel):
    reason: str = ""


# --- transactions / wallet ---

class AmountIn(BaseModel):
    amount: float = Field(gt=0)
    description: str = ""


class PurchaseIn(BaseModel):
    course_id: int


class TransactionCreate(BaseModel):
    user_id: int
    type: Literal["deposit", "payment", "refund", "withdrawal"]
    amount: float = Field(gt=0)
    reference_id: Optional[int] = None
    description: str = ""
    update_wallet: bool = False


class TransactionOut(ORMBase):
    id: int
    user_id: int
    type: str
    amount: float
    balance_after: float
    reference_id: Optional[int] = None
    description: str = ""
    wallet_moved: bool = True
    created_at: datetime.datetime


class BalanceOut(BaseModel):
    balance: float
    currency: str


# --- classrooms ---

class ClassroomCreate(BaseModel):
    name: str
    description: str = ""
    member_ids: List[int] = []


class ClassroomUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class MemberIn(BaseModel):
    user_id: int
    role: Literal["student", "admin", "assistant"] = "student"


class MemberRoleIn(BaseModel):
    role: Literal["student", "admin", "assistant"]


class CourseAssignIn(BaseModel):
    course_id: int


class MaterialIn(BaseModel):
    name: str
    url: str


class MemberOut(ORMBase):
    user_id: int
    role: str
    joined_at: Optional[datetime.datetime] = None


class MaterialOut(ORMBase):
    id: int
    name: str
    url: str
    uploaded_by: Optional[int] = None
    uploaded_at: Optional[datetime.datetime] = None


class ClassroomOut(ORMBase):
    id: int
    name: str
    description: str = ""
    created_by: Optional[int] = None
    members: List[MemberOut] = []
    materials: List[MaterialOut] = []
    assigned_courses: List[int] = []
    created_at: datetime.datetime


# --- messages ---

class MessageCreate(BaseModel):
    classroom_id: int
    content: str = Field(min_length=1)
    type: Literal["text", "system"] = "text"


class MessageUpdate(BaseModel):
    content: str = Field(min_length=1)


class MarkReadIn(BaseModel):
    message_ids: List[int] = Field(min_length=1)


class MessageOut(ORMBase):
    id: int
    classroom_id: int
    sender_id: int
    content: str
    type: str
    read_by: List[int] = []
    is_edited: bool = False
    created_at: datetime.datetime


# --- notifications ---

class NotificationCreate(BaseModel):
    recipient_id: int
    content: str
    type: Literal["system", "promotion", "reminder"] = "system"
    is_read: bool = False


class BulkNotificationCreate(BaseModel):
    recipient_ids: List[int] = Field(min_length=1)
    content: str
    type: Literal["system", "promotion", "reminder"] = "system"


class NotificationUpdate(BaseModel):
    is_read: Optional[bool] = None
    content: Optional[str] = None


class NotificationOut(ORMBase):
    id: int
    recipient_id: int
    content: str
    type: str
    is_read: bool
    created_at: datetime.datetime
