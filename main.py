import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from accounts import AccountService
from config import Settings
from database import Database
from errors import QuizManiaError, UnauthorizedError
from generation import QuizCriteria, QuizService, QuizWriter
from grading import QuizGrader, StatsService
from notifications import EmailNotifier
from schemas import (
    AnswerCheckRequest,
    GenerateQuizRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignInRequest,
    SignupRequest,
)
from security import PasswordHasher

logger = logging.getLogger(__name__)

router = APIRouter()


# -------------------- Dependencies --------------------
def get_database(request: Request) -> Database:
    return request.app.state.database


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_quiz_service(request: Request) -> QuizService:
    return request.app.state.quiz_service


def get_grader(request: Request) -> QuizGrader:
    return request.app.state.grader


def get_stats(request: Request) -> StatsService:
    return request.app.state.stats


# -------------------- Root & Health --------------------
@router.get("/")
def read_root():
    return {"status": True, "message": "QuizMania server is running"}


@router.get("/test")
def test_database(database: Database = Depends(get_database)):
    """Report whether the database is reachable"""
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_name": database.name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = database.list_collection_names()[:10]
        response["database"] = "Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = "Error"
    return response


# -------------------- Quizzes --------------------
@router.post("/generate-quiz")
def generate_quiz(payload: GenerateQuizRequest, quiz_service: QuizService = Depends(get_quiz_service)):
    quiz = quiz_service.create_quiz(QuizCriteria(**payload.model_dump()))
    return {
        "status": True,
        "message": "Successfully generated quiz from AI",
        "id": quiz["_id"],
        "quantity": payload.quantity,
        "difficulty": payload.difficulty,
        "quiz_type": payload.quiz_type,
        "topic": payload.topic,
        "quizzes": quiz["quizzes"],
    }


@router.get("/get-quiz-set/{quiz_id}")
def get_quiz_set(quiz_id: str, grader: QuizGrader = Depends(get_grader)):
    return {"status": True, "quiz": grader.get_quiz(quiz_id)}


@router.post("/answer/checking")
def check_answers(payload: AnswerCheckRequest, grader: QuizGrader = Depends(get_grader)):
    result = grader.grade(payload.id, payload.answers)
    return {"status": True, "message": "Answers checked", **result}


# -------------------- Auth --------------------
@router.post("/signup")
def signup(payload: SignupRequest, accounts: AccountService = Depends(get_accounts)):
    user_id = accounts.signup(payload)
    return {"status": True, "message": "Signup successful", "id": user_id}


@router.post("/signin/{email}")
def signin(email: str, payload: SignInRequest, accounts: AccountService = Depends(get_accounts)):
    user = accounts.sign_in(email, payload.password)
    return {"status": True, "message": "Signin successful", "user": user}


@router.get("/signin/{email}")
def get_user(email: str, accounts: AccountService = Depends(get_accounts)):
    return {"status": True, "user": accounts.get_user(email)}


@router.get("/reset-password/{email}", response_model=MessageResponse)
def forgot_password(email: str, accounts: AccountService = Depends(get_accounts)):
    accounts.request_password_reset(email)
    return MessageResponse(message="Password reset link sent to your email")


@router.patch("/reset-password/{user_id}", response_model=MessageResponse)
def reset_password(user_id: str, payload: ResetPasswordRequest, accounts: AccountService = Depends(get_accounts)):
    accounts.confirm_password_reset(user_id, payload.new_password)
    return MessageResponse(message="Password reset successful")


# -------------------- Stats --------------------
@router.get("/user/stats/{email}")
def user_stats(email: str, stats: StatsService = Depends(get_stats)):
    return {"status": True, **stats.user_stats(email)}


@router.get("/admin/stats")
def admin_stats(stats: StatsService = Depends(get_stats)):
    return {"status": True, **stats.admin_stats()}


# -------------------- Error envelopes --------------------
async def handle_quizmania_error(request: Request, exc: QuizManiaError):
    if not exc.expose:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"status": False, "message": "Internal server error"})

    content = {"status": False, "message": exc.message}
    if isinstance(exc, UnauthorizedError) and exc.remaining_attempts is not None:
        content["remaining_attempts"] = exc.remaining_attempts
    return JSONResponse(status_code=exc.status_code, content=content)


async def handle_persistence_error(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"status": False, "message": "Internal server error"})


async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(status_code=422, content={"status": False, "message": message})


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"status": False, "message": "Internal server error"})


# -------------------- App factory --------------------
def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    writer=None,
    notifier=None,
) -> FastAPI:
    """
    Build the application. Collaborators that are not passed in are created
    from ``settings`` when the app starts and closed when it stops.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = []
        db = database
        if db is None:
            if not settings.database_url:
                raise RuntimeError("DATABASE_URL is not set")
            db = Database.connect(settings.database_url, settings.database_name)
            owned.append(db)
        quiz_writer = writer
        if quiz_writer is None:
            if not settings.openai_api_key:
                raise RuntimeError("OPENAI_API_KEY is not set")
            quiz_writer = QuizWriter.from_api_key(settings.openai_api_key, settings.openai_model)
            owned.append(quiz_writer)
        email_notifier = notifier
        if email_notifier is None:
            if not settings.resend_api_key:
                logger.warning("RESEND_API_KEY not set - password reset emails will fail")
            email_notifier = EmailNotifier(settings.resend_api_key, settings.email_from)

        try:
            db.ensure_indexes()
        except PyMongoError as e:
            logger.warning("Could not ensure indexes: %s", e)

        accounts = AccountService(db, PasswordHasher(settings.bcrypt_rounds), email_notifier, settings.frontend_url)
        try:
            accounts.purge_expired_reset_tokens()
        except PyMongoError as e:
            logger.warning("Could not purge expired reset tokens: %s", e)

        app.state.database = db
        app.state.accounts = accounts
        app.state.quiz_service = QuizService(db, quiz_writer, settings.quiz_item_types)
        app.state.grader = QuizGrader(db)
        app.state.stats = StatsService(db)
        logger.info("QuizMania API started")

        yield

        for resource in owned:
            resource.close()
        logger.info("Shutting down...")

    app = FastAPI(title="QuizMania API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(QuizManiaError, handle_quizmania_error)
    app.add_exception_handler(PyMongoError, handle_persistence_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
