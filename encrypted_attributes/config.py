import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./encrypted_attributes.db",
    )
    SYMMETRIC_ENCRYPTION_KEY: str = os.getenv("SYMMETRIC_ENCRYPTION_KEY", "")
    ASYMMETRIC_PUBLIC_KEY_FILE: str = os.getenv("ASYMMETRIC_PUBLIC_KEY_FILE", "")
    ASYMMETRIC_PRIVATE_KEY_FILE: str = os.getenv("ASYMMETRIC_PRIVATE_KEY_FILE", "")
    ASYMMETRIC_PRIVATE_KEY_PASSPHRASE: str = os.getenv("ASYMMETRIC_PRIVATE_KEY_PASSPHRASE", "")
    DIGEST_ALGORITHM: str = os.getenv("DIGEST_ALGORITHM", "sha1")
    DIGEST_DEFAULT_SALT: str = os.getenv("DIGEST_DEFAULT_SALT", "salt")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
