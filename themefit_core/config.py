#!/usr/bin/env python3
from dataclasses import dataclass
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Config:
    """Application configuration"""
    # Selector inference
    confidence_threshold: float = float(os.getenv("THEMEFIT_CONFIDENCE_THRESHOLD", "0.7"))
    max_selectors: int = int(os.getenv("THEMEFIT_MAX_SELECTORS", "10"))
    inference_timeout: int = int(os.getenv("THEMEFIT_INFERENCE_TIMEOUT", "60"))

    # Adapter store
    db_path: Path = Path(os.getenv("THEMEFIT_DB_PATH", "./workspace/adapters.db"))
    cache_ttl_seconds: int = int(os.getenv("THEMEFIT_CACHE_TTL", str(86400 * 7)))

    # Read API
    api_base: str = os.getenv("THEMEFIT_API_BASE", "http://localhost:3001")
    api_port: int = int(os.getenv("THEMEFIT_API_PORT", os.getenv("API_PORT", "3001")))
    payload_dir: Path = Path(os.getenv("THEMEFIT_PAYLOAD_DIR", "./workspace/variants"))

    # Injection runtime
    product_path_marker: str = os.getenv("THEMEFIT_PRODUCT_PATH_MARKER", "/products/")
    variant_param: str = os.getenv("THEMEFIT_VARIANT_PARAM", "tf_variant")
    inline_payload_id: str = os.getenv("THEMEFIT_INLINE_PAYLOAD_ID", "themefit-data")
    fetch_timeout: int = int(os.getenv("THEMEFIT_FETCH_TIMEOUT", "10"))
    debounce_ms: int = int(os.getenv("THEMEFIT_DEBOUNCE_MS", "100"))
    max_reapply_per_window: int = int(os.getenv("THEMEFIT_MAX_REAPPLY", "10"))
    reapply_window_seconds: float = float(os.getenv("THEMEFIT_REAPPLY_WINDOW", "10"))
    highlight_seconds: float = float(os.getenv("THEMEFIT_HIGHLIGHT_SECONDS", "2"))

    enable_debug: bool = os.getenv("THEMEFIT_DEBUG", "false").lower() in ["true", "1", "yes"]

config = Config()
