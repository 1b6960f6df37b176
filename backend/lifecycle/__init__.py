"""Page lifecycle: phase orchestration, synthetic blocks, font warm-up."""

from .auto_blocks import build_auto_blocks, build_hero_block, decorate_main
from .orchestrator import LifecycleOrchestrator, LifecyclePhase

__all__ = [
    "build_auto_blocks",
    "build_hero_block",
    "decorate_main",
    "LifecycleOrchestrator",
    "LifecyclePhase",
]
