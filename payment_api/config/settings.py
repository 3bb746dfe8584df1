"""
Configuration settings for the payment API
Handles environment variables and provider credentials
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Load from project root
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), ".env")
load_dotenv(env_path)


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "CraftMyStore Payment API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Frontend (comma separated; the first entry builds redirect URLs)
    FRONTEND_URL: str = "http://localhost:3000"
    BRAND_NAME: str = "CraftMyStore"
    TRANSACTION_PREFIX: str = "CMS"

    # PhonePe
    PHONEPE_PROTOCOL: str = "checksum"  # checksum | standard
    PHONEPE_BASE_URL: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"
    PHONEPE_MERCHANT_ID: Optional[str] = None
    PHONEPE_MERCHANT_KEY: Optional[str] = None
    PHONEPE_SALT_INDEX: str = "1"
    PHONEPE_CALLBACK_URL: Optional[str] = None  # defaults to <frontend>/api/payment/phonepe-callback
    # Standard checkout (OAuth) credentials
    PHONEPE_AUTH_URL: str = "https://api-preprod.phonepe.com/apis/pg-sandbox/v1/oauth/token"
    PHONEPE_CLIENT_ID: Optional[str] = None
    PHONEPE_CLIENT_SECRET: Optional[str] = None
    PHONEPE_CLIENT_VERSION: str = "1"
    PHONEPE_TIMEOUT_SECONDS: float = 10.0
    PHONEPE_MOCK_FALLBACK: bool = False

    # PayPal
    PAYPAL_BASE_URL: str = "https://api-m.sandbox.paypal.com"
    PAYPAL_CLIENT_ID: Optional[str] = None
    PAYPAL_SECRET_KEY: Optional[str] = None
    PAYPAL_CURRENCY: str = "USD"
    PAYPAL_TIMEOUT_SECONDS: float = 30.0

    @field_validator("PHONEPE_PROTOCOL")
    @classmethod
    def check_protocol(cls, v):
        v = v.strip().lower()
        if v not in ("checksum", "standard"):
            raise ValueError("PHONEPE_PROTOCOL must be 'checksum' or 'standard'")
        return v

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.FRONTEND_URL.split(",") if origin.strip()]

    @property
    def frontend_base_url(self) -> str:
        origins = self.allowed_origins
        return origins[0].rstrip("/") if origins else ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env file


def apply_environment_overrides(s: Settings) -> Settings:
    """Development defaults; values set explicitly in the environment win."""
    if s.ENVIRONMENT == "development":
        if "DEBUG" not in s.model_fields_set:
            s.DEBUG = True
        if "PHONEPE_MOCK_FALLBACK" not in s.model_fields_set:
            s.PHONEPE_MOCK_FALLBACK = True
    return s


# Create settings instance
settings = apply_environment_overrides(Settings())


# Validation
def validate_settings(s: Optional[Settings] = None):
    """Validate critical settings"""
    s = s or settings
    issues = []

    if s.PHONEPE_PROTOCOL == "checksum":
        if not s.PHONEPE_MERCHANT_ID:
            issues.append("PHONEPE_MERCHANT_ID must be set")
        if not s.PHONEPE_MERCHANT_KEY:
            issues.append("PHONEPE_MERCHANT_KEY must be set")
    else:
        if not s.PHONEPE_CLIENT_ID or not s.PHONEPE_CLIENT_SECRET:
            issues.append("PHONEPE_CLIENT_ID and PHONEPE_CLIENT_SECRET must be set")

    if not s.PAYPAL_CLIENT_ID or not s.PAYPAL_SECRET_KEY:
        issues.append("PAYPAL_CLIENT_ID and PAYPAL_SECRET_KEY must be set")

    if issues:
        raise ValueError(f"Configuration issues: {', '.join(issues)}")
