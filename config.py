import os
from pathlib import Path


class BaseConfig:
    # ---------------------
    # Logging
    # ---------------------
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # ---------------------
    # Database
    # ---------------------
    SQLITE_PATH = os.getenv("SQLITE_PATH", str(Path.cwd() / "school.db"))
    DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{SQLITE_PATH}")
    SQL_ECHO = os.getenv("SQL_ECHO", "0") == "1"

    # ---------------------
    # Billing
    # ---------------------
    DEFAULT_DUE_DAY = int(os.getenv("DEFAULT_DUE_DAY", 15))  # day of the period
    RECEIPT_PREFIX = os.getenv("RECEIPT_PREFIX", "REC")

    # Seconds to wait for another payment on the same payer to finish
    PAYER_LOCK_TIMEOUT = float(os.getenv("PAYER_LOCK_TIMEOUT", 10))


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False
    TESTING = False


class TestConfig(BaseConfig):
    TESTING = True
    LOG_LEVEL = "WARNING"
    DATABASE_URL = "sqlite://"
    PAYER_LOCK_TIMEOUT = 2.0


_CONFIGS = {"dev": DevConfig, "prod": ProdConfig, "test": TestConfig}

settings = _CONFIGS.get(os.getenv("APP_ENV", "dev"), DevConfig)
