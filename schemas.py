"""
Database and API schemas.

Collections live in the ``QuizMania`` database:
- users         -> User
- quizzes       -> Quiz (items are QuizItem)
- reset_tokens  -> PasswordResetToken

Request bodies are validated here; stored documents use the same field names.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)


class User(BaseModel):
    """
    Users collection schema
    Collection name: "users"
    """
    email: EmailStr = Field(..., description="Email address, unique across users")
    username: str = Field(..., description="Display name")
    password_hash: Optional[str] = Field(None, description="BCrypt password hash, absent for social logins")
    role: str = Field("user", description="user | admin")
    failed_attempts: int = Field(0, ge=0, description="Consecutive failed sign-ins")
    blocked: bool = Field(False, description="Locked out after too many failed sign-ins")
    last_login_time: Optional[datetime] = Field(None, description="Last successful sign-in")


class PasswordResetToken(BaseModel):
    """
    Reset tokens collection schema
    Collection name: "reset_tokens" (one document per email)
    """
    email: EmailStr
    expires_at: datetime


class QuizItem(BaseModel):
    type: str
    question: str
    options: List[str] = Field(default_factory=list)
    answer: str
    user_answer: Optional[str] = None
    outcome: Optional[str] = Field(None, description="correct | wrong, set once graded")

    @field_validator("answer", mode="before")
    def stringify_answer(cls, v):
        # Generators sometimes emit true/false or bare numbers as answers.
        if isinstance(v, bool):
            return "True" if v else "False"
        if isinstance(v, (int, float)):
            return str(v)
        return v


class Quiz(BaseModel):
    """
    Quizzes collection schema
    Collection name: "quizzes"
    """
    user: EmailStr = Field(..., description="Owner email")
    topic: str
    difficulty: str
    quiz_type: str
    quantity: int
    quizzes: List[QuizItem]
    status: str = Field("unsolved", description="unsolved | solved")
    correct_count: Optional[int] = None
    incorrect_count: Optional[int] = None


_email_adapter = TypeAdapter(EmailStr)


def normalize_email(value: str) -> str:
    """
    Normalize an address the way EmailStr does when it is stored (the domain
    is lowercased). Strings that are not valid addresses are returned as they
    are; no stored document can carry one.
    """
    try:
        return _email_adapter.validate_python(value)
    except ValidationError:
        return value


# -------------------- Requests --------------------
SERVER_MANAGED_USER_FIELDS = {
    "_id", "password_hash", "role", "failed_attempts", "blocked",
    "last_login_time", "created_at", "updated_at",
}


class SignupRequest(BaseModel):
    # Social providers send extra profile fields (photo URL, provider id...)
    # which are stored, minus the server-managed user fields.
    model_config = ConfigDict(extra="allow")

    email: EmailStr
    username: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=6, max_length=128)
    social_login: bool = False

    @model_validator(mode="after")
    def password_required_for_local_accounts(self):
        if not self.social_login and not self.password:
            raise ValueError("password is required unless signing up with a social login")
        return self

    def profile_fields(self) -> dict:
        """Fields to store for a social signup; server-managed keys are dropped."""
        data = self.model_dump(exclude={"password", "social_login"})
        return {
            key: value for key, value in data.items()
            if key not in SERVER_MANAGED_USER_FIELDS and not key.startswith("$")
        }


class SignInRequest(BaseModel):
    password: str


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=6, max_length=128)


class GenerateQuizRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    difficulty: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=50)
    quiz_type: str = Field(..., min_length=1)
    user: EmailStr


class SubmittedAnswer(BaseModel):
    question: str
    user_answer: Optional[str] = None


class AnswerCheckRequest(BaseModel):
    id: str = Field(..., description="Quiz id")
    answers: List[SubmittedAnswer]


# -------------------- Responses --------------------
class MessageResponse(BaseModel):
    status: bool = True
    message: str
