import os
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: List[str] = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Application settings
    app_name: str = os.getenv("APP_NAME", "booksnap")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG", "False")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Hugging Face inference settings
    hugging_face_api_key: Optional[str] = os.getenv("HUGGING_FACE_API_KEY")
    hugging_face_base_url: str = os.getenv("HUGGING_FACE_BASE_URL", "https://router.huggingface.co/v1")
    hugging_face_vision_model: str = os.getenv("HUGGING_FACE_VISION_MODEL", "Qwen/Qwen2.5-VL-7B-Instruct")
    hugging_face_text_model: str = os.getenv("HUGGING_FACE_TEXT_MODEL", "meta-llama/Llama-3.1-8B-Instruct")
    hugging_face_timeout: float = float(os.getenv("HUGGING_FACE_TIMEOUT", "30"))

    # Open Library settings
    openlibrary_base_url: str = os.getenv("OPENLIBRARY_BASE_URL", "https://openlibrary.org")
    openlibrary_timeout: float = float(os.getenv("OPENLIBRARY_TIMEOUT", "10"))

    # Upload settings
    max_upload_size: int = int(os.getenv("MAX_UPLOAD_SIZE", "10485760"))  # 10MB

    # Feature flags
    enable_ai_features: bool = _env_flag("ENABLE_AI_FEATURES", "True")


settings = Settings()
