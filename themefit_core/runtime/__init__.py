"""Page-view side: payload loading, guarded patching and self-healing."""
from .dom import PageDocument, MutationObserver, MutationRecord
from .guard import is_protected_element
from .strategies import TextPatch, HtmlPatch, ImageSrcPatch, ListTextPatch, AppliedPatch, build_patch
from .reconciler import ReapplyScheduler
from .payload import PayloadLoader
from .analytics import AnalyticsBeacon
from .injector import InjectionRuntime, RuntimeState, run_injection

__all__ = [
    "PageDocument",
    "MutationObserver",
    "MutationRecord",
    "is_protected_element",
    "TextPatch",
    "HtmlPatch",
    "ImageSrcPatch",
    "ListTextPatch",
    "AppliedPatch",
    "build_patch",
    "ReapplyScheduler",
    "PayloadLoader",
    "AnalyticsBeacon",
    "InjectionRuntime",
    "RuntimeState",
    "run_injection",
]
