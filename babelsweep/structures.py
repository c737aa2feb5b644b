"""Core data structures for BabelSweep."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SweepState(Enum):
    """Phases of a sweep. Only one sweep may be outside IDLE at a time."""

    IDLE = "idle"
    SCANNING = "scanning"
    TRANSLATING = "translating"
    APPLYING = "applying"
    RESTORING = "restoring"


@dataclass
class EligibleTextNode:
    """A live text node selected for translation.

    `node` and `parent` are opaque references owned by the document adapter.
    They may go stale if the tree changes outside the sweep.
    """

    node: Any
    parent: Any
    text: str


@dataclass
class SweepReport:
    """Report returned after a sweep completes."""

    language: str
    restored: bool
    scanned_nodes: int = 0
    translation_requests: int = 0
    applied_nodes: int = 0
    failed_nodes: int = 0
    elapsed_seconds: float = 0.0

    @property
    def mutated(self) -> bool:
        return self.applied_nodes > 0
