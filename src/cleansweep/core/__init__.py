# Core sweeper components

from .entries import (
    PhantomEntry,
    SweepAction,
    TargetAwareAction,
    Tier,
    TrackedEntry,
    WeakEntry,
)
from .observation import CancellationToken, ObservationQueue
from .registry import PendingRegistry
from .sweeper import LoopState, Sweeper, SweeperConfig

__all__ = [
    "CancellationToken",
    "LoopState",
    "ObservationQueue",
    "PendingRegistry",
    "PhantomEntry",
    "SweepAction",
    "Sweeper",
    "SweeperConfig",
    "TargetAwareAction",
    "Tier",
    "TrackedEntry",
    "WeakEntry",
]
