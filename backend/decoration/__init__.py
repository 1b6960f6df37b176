"""Generic decoration pipeline contract, a static implementation, and the decoration-completion observer."""

from .base import (
    BLOCK_STATUS_ATTR,
    SECTION_STATUS_ATTR,
    STATUS_ERROR,
    STATUS_LOADED,
    STATUS_LOADING,
    STATUS_PENDING,
    DecorationPipeline,
)
from .observer import DecoratedSubscription, DecorationObserver
from .static_pipeline import StaticDecorationPipeline, to_class_name

__all__ = [
    "BLOCK_STATUS_ATTR",
    "SECTION_STATUS_ATTR",
    "STATUS_ERROR",
    "STATUS_LOADED",
    "STATUS_LOADING",
    "STATUS_PENDING",
    "DecorationPipeline",
    "DecoratedSubscription",
    "DecorationObserver",
    "StaticDecorationPipeline",
    "to_class_name",
]
