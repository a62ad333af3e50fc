"""
themefit_core: theme mapping and variant injection for storefront product pages

Out of band:
    snapshot -> SelectorInference.infer() -> AdapterStore.save()

At page view:
    from themefit_core.runtime import PageDocument, InjectionRuntime
    runtime = InjectionRuntime(PageDocument(html, url))
    await runtime.start()

The Flask read API lives in themefit_core.server (not imported here, it
configures logging on import).
"""
from .config import Config, config
from .errors import (
    ThemefitError,
    InferenceError,
    AdapterValidationError,
    AdapterStoreError,
    PayloadError,
)
from .models import DOMSnapshot, ThemeAdapter, ContentPayload, Strategy, FieldName
from .fingerprint import fingerprint
from .heuristic_adapter import build_heuristic_adapter
from .selector_inference import SelectorInference, InferenceOptions
from .adapter_store import AdapterStore, SQLiteAdapterStore, MemoryAdapterCache
from .llm_config import LLMConfig, LLMPresets
from .llm_factory import setup_llm, create_llm_client
from .mapping_job import build_theme_adapter, map_product_page

__all__ = [
    # Core
    "Config",
    "config",
    "DOMSnapshot",
    "ThemeAdapter",
    "ContentPayload",
    "Strategy",
    "FieldName",
    "fingerprint",
    "build_heuristic_adapter",
    "SelectorInference",
    "InferenceOptions",
    "AdapterStore",
    "SQLiteAdapterStore",
    "MemoryAdapterCache",
    "build_theme_adapter",
    "map_product_page",
    # LLM
    "LLMConfig",
    "LLMPresets",
    "setup_llm",
    "create_llm_client",
    # Errors
    "ThemefitError",
    "InferenceError",
    "AdapterValidationError",
    "AdapterStoreError",
    "PayloadError",
]
