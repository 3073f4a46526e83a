import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{os.path.join(basedir, 'gigorders.db')}"
    )

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-only-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_EXPIRES", 86400)))

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Order pipeline tunables
    REQUIREMENT_OVERDUE_DAYS = int(os.getenv("REQUIREMENT_OVERDUE_DAYS", 3))
    DELIVERY_SOON_DAYS = int(os.getenv("DELIVERY_SOON_DAYS", 3))
    PIPELINE_DEFAULT_LOOKBACK_DAYS = int(os.getenv("PIPELINE_DEFAULT_LOOKBACK_DAYS", 120))
    PIPELINE_MAX_LOOKBACK_DAYS = int(os.getenv("PIPELINE_MAX_LOOKBACK_DAYS", 365))
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    LOG_LEVEL = "WARNING"


class ProductionConfig(Config):
    DEBUG = False
    # Heroku-style URLs use postgres:// which SQLAlchemy no longer accepts
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "").replace("postgres://", "postgresql://", 1)


config_by_name = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}
