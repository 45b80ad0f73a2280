"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional

MB = 1024 * 1024


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_anon_key: str = ""

    # Storage buckets
    customer_photos_bucket: str = "customer-photos"
    order_references_bucket: str = "order-references"

    # Upload limits
    max_upload_bytes: int = 10 * MB  # general uploads
    wizard_max_upload_bytes: int = 5 * MB  # uploads made inside the order wizard
    min_image_width: int = 600
    min_image_height: int = 800

    # Compression
    compress_max_width: int = 1024
    compress_max_height: int = 1536
    compress_quality: float = 0.85

    # Try-on generation
    tryon_dispatch_mode: str = "local"  # "local" or "edge"
    tryon_function_name: str = "tryon-generate"
    tryon_function_timeout_seconds: float = 120.0
    tryon_poll_interval_seconds: float = 2.0
    tryon_max_attempts: int = 30
    replicate_api_token: Optional[str] = None
    replicate_model: str = "black-forest-labs/flux-schnell"
    replicate_timeout_seconds: float = 120.0
    tryon_garment_category: str = "upper_body"  # idm-vton: upper_body, lower_body or dresses

    # Wizard
    autosave_debounce_seconds: float = 1.5

    # Service
    service_port: int = 8001
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:8080"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
