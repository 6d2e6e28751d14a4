# tms_api/config.py
import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_PATH = os.path.join(PROJECT_ROOT, ".env")
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "tms"

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_VISION_MODEL: str = "gpt-4o"

    GOOGLE_MAPS_API_KEY: Optional[str] = None

    # Service account used for every spreadsheet export
    GOOGLE_SHEETS_CLIENT_EMAIL: Optional[str] = None
    GOOGLE_SHEETS_PRIVATE_KEY: Optional[str] = None
    GOOGLE_SHEET_ID: Optional[str] = None
    GOOGLE_SHEET_NAME: Optional[str] = None
    CONTRACTED_TRANSPORT_SHEET_ID: Optional[str] = None
    CONTRACTED_TRANSPORT_SHEET_NAME: Optional[str] = None
    # Sheet timestamps are written in the office's local time
    SHEETS_TIMEZONE: str = "Asia/Ulaanbaatar"

    # Firebase Storage bucket for uploads; local UPLOAD_DIR is used when unset
    FIREBASE_STORAGE_BUCKET: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None

    UPLOAD_DIR: str = os.path.join(PROJECT_ROOT, "uploads")
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    PDF_FONT_DIR: str = os.path.join(PROJECT_ROOT, "fonts")

    VAT_RATE: float = 0.1

    COMPANY_CITY: str = "Ulaanbaatar city, Mongolia"
    COMPANY_NAME: str = "Tumen Resources LLC, Mongol HD TOWER-905,"
    COMPANY_ADDRESS: str = "Sukhbaatar district, Baga toiruu-49, 210646, Ulaanbaatar city, Mongolia"
    COMPANY_WEBSITE: str = "www.tumentech.mn"
    COMPANY_PHONE: str = "7775-1111"
    COMPANY_BRAND: str = "TUMEN TECH"

    FRONTEND_ORIGIN: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=ENV_PATH, env_file_encoding='utf-8', extra='ignore')


settings = Settings()
