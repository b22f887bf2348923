import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv(encoding="utf-8")

FBR_DEFAULT_BASE_URL = "https://gw.fbr.gov.pk/di_data/v1/di"


class Settings(BaseSettings):
    # App
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    # FBR endpoints (sandbox and production never share credentials)
    FBR_SANDBOX_BASE_URL: str = os.getenv("FBR_SANDBOX_BASE_URL", FBR_DEFAULT_BASE_URL)
    FBR_PRODUCTION_BASE_URL: str = os.getenv("FBR_PRODUCTION_BASE_URL", FBR_DEFAULT_BASE_URL)
    FBR_SANDBOX_TOKEN: str = os.getenv("FBR_SANDBOX_TOKEN", "")
    FBR_PRODUCTION_TOKEN: str = os.getenv("FBR_PRODUCTION_TOKEN", "")

    # Seller defaults, used only when neither the order nor the tenant config carries them
    FBR_SELLER_NTNCNIC: str = os.getenv("FBR_SELLER_NTNCNIC", "")
    FBR_SELLER_BUSINESS_NAME: str = os.getenv("FBR_SELLER_BUSINESS_NAME", "")
    FBR_SELLER_PROVINCE: str = os.getenv("FBR_SELLER_PROVINCE", "")
    FBR_SELLER_ADDRESS: str = os.getenv("FBR_SELLER_ADDRESS", "")

    # Remote validation attempts (1 = no retry). Posting is never retried.
    FBR_VALIDATE_MAX_ATTEMPTS: int = int(os.getenv("FBR_VALIDATE_MAX_ATTEMPTS", 1))

    # MongoDB (tenant settings)
    MONGODB_URL: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "commerce_backoffice")
    MONGODB_TENANT_SETTINGS_COLLECTION: str = os.getenv("MONGODB_TENANT_SETTINGS_COLLECTION", "tenant_fbr_settings")

    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", 8000))

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore unknown keys instead of raising
    }


settings = Settings()
