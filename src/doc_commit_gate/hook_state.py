"""Execution state for one hook command."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CommandState:
    name: str
    run: str
    command: Optional[str] = None
    files: List[str] = field(default_factory=list)
    exit_code: Optional[int] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    skip_reason: Optional[str] = None
    status: str = "PENDING"  # PENDING | RUNNING | SKIPPED | SUCCESS | FAILED
