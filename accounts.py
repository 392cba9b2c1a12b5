"""
Account security: signup, sign-in with lockout, and password reset.

State per user is kept in the users collection. ``failed_attempts`` counts
consecutive wrong passwords; the fifth one sets ``blocked`` and nothing in the
API clears it again. Reset tokens live in their own collection, one per email.
"""
import logging
from datetime import timedelta
from typing import Any, Dict

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import Database, as_utc, parse_object_id, serialize_document, utcnow
from errors import ConflictError, ExpiredError, ForbiddenError, NotFoundError, UnauthorizedError
from notifications import send_password_reset_email
from schemas import PasswordResetToken, SignupRequest, User, normalize_email
from security import PasswordHasher

logger = logging.getLogger(__name__)

MAX_FAILED_ATTEMPTS = 5
RESET_TOKEN_TTL = timedelta(minutes=5)

BLOCKED_MESSAGE = "Your account is blocked. Please contact the admin."


class AccountService:
    def __init__(self, database: Database, hasher: PasswordHasher, notifier, frontend_url: str):
        self.database = database
        self.hasher = hasher
        self.notifier = notifier
        self.frontend_url = frontend_url

    # -------------------- Signup --------------------
    def signup(self, payload: SignupRequest) -> str:
        users = self.database.users
        if users.find_one({"email": payload.email}):
            raise ConflictError("User already exists")

        if payload.social_login:
            doc = payload.profile_fields()
            doc.update(role="user", failed_attempts=0, blocked=False)
        else:
            doc = User(
                email=payload.email,
                username=payload.username,
                password_hash=self.hasher.hash(payload.password),
            ).model_dump(exclude_none=True)
        doc["created_at"] = utcnow()

        try:
            result = users.insert_one(doc)
        except DuplicateKeyError:
            # Lost a race against a concurrent signup for the same email.
            raise ConflictError("User already exists")
        logger.info("User %s signed up (social=%s)", result.inserted_id, payload.social_login)
        return str(result.inserted_id)

    # -------------------- Sign-in --------------------
    def get_user(self, email: str) -> Dict[str, Any]:
        user = self.database.users.find_one({"email": normalize_email(email)})
        if not user:
            raise NotFoundError("User not found")
        return serialize_document(user)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        users = self.database.users
        user = users.find_one({"email": normalize_email(email)})
        if not user:
            raise NotFoundError("User not found")
        if user.get("blocked"):
            raise ForbiddenError(BLOCKED_MESSAGE)

        if not self.hasher.verify(password, user.get("password_hash")):
            self._record_failure(user)

        updated = users.find_one_and_update(
            {"_id": user["_id"], "blocked": {"$ne": True}},
            {"$set": {"failed_attempts": 0, "last_login_time": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            # Blocked or removed since it was read.
            if users.find_one({"_id": user["_id"]}):
                raise ForbiddenError(BLOCKED_MESSAGE)
            raise NotFoundError("User not found")
        logger.info("User %s signed in", user["_id"])
        return serialize_document(updated)

    def _record_failure(self, user: Dict[str, Any]) -> None:
        users = self.database.users
        # Increment only while below the lockout threshold; the counter is
        # never read-modify-written so concurrent failures are all counted.
        updated = users.find_one_and_update(
            {
                "_id": user["_id"],
                "blocked": {"$ne": True},
                "failed_attempts": {"$lt": MAX_FAILED_ATTEMPTS - 1},
            },
            {"$inc": {"failed_attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            users.update_one({"_id": user["_id"]}, {"$set": {"blocked": True}})
            logger.warning("User %s blocked after %d failed sign-ins", user["_id"], MAX_FAILED_ATTEMPTS)
            raise ForbiddenError(BLOCKED_MESSAGE)

        remaining = MAX_FAILED_ATTEMPTS - updated["failed_attempts"]
        raise UnauthorizedError(
            f"Incorrect password. {remaining} attempt(s) remaining.",
            remaining_attempts=remaining,
        )

    # -------------------- Password reset --------------------
    def request_password_reset(self, email: str) -> None:
        user = self.database.users.find_one({"email": normalize_email(email)})
        if not user:
            raise NotFoundError("User not found")

        token = PasswordResetToken(email=user["email"], expires_at=utcnow() + RESET_TOKEN_TTL)
        self.database.reset_tokens.update_one(
            {"email": token.email},
            {"$set": token.model_dump()},
            upsert=True,
        )

        reset_url = f"{self.frontend_url}/reset-password/{user['_id']}"
        send_password_reset_email(
            self.notifier,
            user["email"],
            user.get("username"),
            reset_url,
            int(RESET_TOKEN_TTL.total_seconds() // 60),
        )
        logger.info("Password reset link sent for user %s", user["_id"])

    def confirm_password_reset(self, user_id: str, new_password: str) -> None:
        oid = parse_object_id(user_id)
        user = self.database.users.find_one({"_id": oid}) if oid else None
        if not user:
            raise NotFoundError("User not found")

        token = self.database.reset_tokens.find_one({"email": user["email"]})
        if not token or utcnow() > as_utc(token["expires_at"]):
            raise ExpiredError("Reset link has expired. Please request a new one.")

        # Lockout state is deliberately left as it is.
        self.database.users.update_one(
            {"_id": user["_id"]},
            {"$set": {"password_hash": self.hasher.hash(new_password), "updated_at": utcnow()}},
        )
        logger.info("Password reset for user %s", user["_id"])

    def purge_expired_reset_tokens(self) -> int:
        result = self.database.reset_tokens.delete_many({"expires_at": {"$lt": utcnow()}})
        if result.deleted_count:
            logger.info("Removed %d expired reset tokens", result.deleted_count)
        return result.deleted_count
