import os
from datetime import timedelta

def _env_bool(name, default=False):
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}

class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # Braintree
    BRAINTREE_ENVIRONMENT = os.getenv("BRAINTREE_ENVIRONMENT", "sandbox")
    BRAINTREE_MERCHANT_ID = os.getenv("BRAINTREE_MERCHANT_ID", "")
    BRAINTREE_PUBLIC_KEY = os.getenv("BRAINTREE_PUBLIC_KEY", "")
    BRAINTREE_PRIVATE_KEY = os.getenv("BRAINTREE_PRIVATE_KEY", "")

    # Brevo transactional mail
    BREVO_API_KEY = os.getenv("BREVO_API_KEY", "")
    BREVO_SENDER_EMAIL = os.getenv("BREVO_SENDER_EMAIL", "")
    BREVO_SENDER_NAME = os.getenv("BREVO_SENDER_NAME", "PaperCloud")

    # Celery (mail is queued on the "emails" queue)
    CELERY = {
        "broker_url": os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "result_backend": os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_serializer": "json",
        "accept_content": ["json"],
        "timezone": "UTC",
        "enable_utc": True,
        "task_time_limit": 300,
        "task_soft_time_limit": 240,
        "task_routes": {"storefront.tasks.email_tasks.*": {"queue": "emails"}},
        "task_always_eager": _env_bool("CELERY_TASK_ALWAYS_EAGER", False),
    }

    APP_URL = os.getenv("APP_URL", "http://localhost:3000")

    # account e-mails
    EMAIL_VERIFICATION_OTP_TTL_MINUTES = int(os.getenv("EMAIL_VERIFICATION_OTP_TTL_MINUTES", "10"))
    PASSWORD_RESET_TOKEN_TTL_MINUTES = int(os.getenv("PASSWORD_RESET_TOKEN_TTL_MINUTES", "60"))

    # reprice the cart server-side and reject a client amount that disagrees
    CHECKOUT_VERIFY_AMOUNT = _env_bool("CHECKOUT_VERIFY_AMOUNT", True)

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")
        if not url:
            os.makedirs(app.instance_path, exist_ok=True)
            url = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        app.config["SQLALCHEMY_DATABASE_URI"] = url

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    CELERY = {**Config.CELERY, "broker_url": "memory://", "result_backend": "cache+memory://",
              "task_always_eager": True}
    BREVO_API_KEY = ""
    BREVO_SENDER_EMAIL = ""
    CHECKOUT_VERIFY_AMOUNT = True
    LOG_LEVEL = "DEBUG"
