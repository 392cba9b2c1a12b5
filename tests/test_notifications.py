import pytest
import resend

from config import Settings
from errors import DeliveryError
from notifications import EmailNotifier, render_template, send_password_reset_email


@pytest.fixture
def sent(monkeypatch):
    calls = []

    def fake_send(params):
        calls.append(params)
        return {"id": "email-123"}

    monkeypatch.setattr(resend, "api_key", None)
    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return calls


def test_send_uses_resend(sent):
    notifier = EmailNotifier("re_test", "QuizMania <noreply@quiz.test>")

    message_id = notifier.send("user@quizmania.com", "Hello", "<p>Hi</p>")

    assert message_id == "email-123"
    assert sent == [{
        "from": "QuizMania <noreply@quiz.test>",
        "to": ["user@quizmania.com"],
        "subject": "Hello",
        "html": "<p>Hi</p>",
    }]


def test_missing_api_key_is_a_delivery_error(sent):
    notifier = EmailNotifier(None, "noreply@quiz.test")

    with pytest.raises(DeliveryError):
        notifier.send("user@quizmania.com", "Hello", "<p>Hi</p>")
    assert sent == []


def test_provider_failure_is_a_delivery_error(monkeypatch):
    def broken(params):
        raise RuntimeError("503 from provider")

    monkeypatch.setattr(resend, "api_key", None)
    monkeypatch.setattr(resend.Emails, "send", broken)
    notifier = EmailNotifier("re_test", "noreply@quiz.test")

    with pytest.raises(DeliveryError, match="503"):
        notifier.send("user@quizmania.com", "Hello", "<p>Hi</p>")


def test_reset_email_template_escapes_username():
    html = render_template("password_reset.html", {
        "username": "<b>Eve</b>",
        "reset_url": "http://quiz.test/reset-password/abc",
        "expire_minutes": 5,
    })

    assert "&lt;b&gt;Eve&lt;/b&gt;" in html
    assert 'href="http://quiz.test/reset-password/abc"' in html
    assert "5 minutes" in html


def test_send_password_reset_email_subject(sent):
    notifier = EmailNotifier("re_test", "noreply@quiz.test")

    send_password_reset_email(notifier, "user@quizmania.com", None, "http://quiz.test/reset-password/abc", 5)

    assert sent[0]["subject"] == "Reset your QuizMania password"
    assert "Hi there," in sent[0]["html"]


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mongodb://db:27017")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("QUIZ_ITEM_TYPES", "Multiple Choice,True or False,Fill in the Blanks")
    monkeypatch.setenv("FRONTEND_URL", "https://quizmania.test/")
    monkeypatch.setenv("BCRYPT_ROUNDS", "10")

    settings = Settings.from_env()

    assert settings.database_url == "mongodb://db:27017"
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.quiz_item_types[-1] == "Fill in the Blanks"
    assert settings.frontend_url == "https://quizmania.test"
    assert settings.bcrypt_rounds == 10
