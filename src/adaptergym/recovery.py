"""Failure recovery mechanisms for AdapterGym."""

import json
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from adaptergym.core.events import CancellationToken
from adaptergym.core.state import RunState


@dataclass
class RecoveryState:
    """Best-known state saved next to a recovery checkpoint."""

    iteration: int
    best_loss: float
    best_accuracy: float
    initial_accuracy: float
    best_scale: float | None = None
    checkpoint_name: str = ""

    def save(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps({
            "iteration": self.iteration,
            "best_loss": self.best_loss,
            "best_accuracy": self.best_accuracy,
            "initial_accuracy": self.initial_accuracy,
            "best_scale": self.best_scale,
            "checkpoint_name": self.checkpoint_name,
        }, indent=2))

    @classmethod
    def load(cls, path: str | Path) -> "RecoveryState | None":
        p = Path(path)
        if not p.exists():
            return None
        data = json.loads(p.read_text())
        return cls(
            iteration=data["iteration"],
            best_loss=data["best_loss"],
            best_accuracy=data["best_accuracy"],
            initial_accuracy=data.get("initial_accuracy", 0.0),
            best_scale=data.get("best_scale"),
            checkpoint_name=data.get("checkpoint_name", ""),
        )

    @classmethod
    def from_run_state(cls, state: RunState, checkpoint_name: str) -> "RecoveryState":
        return cls(
            iteration=state.last_iteration,
            best_loss=state.best_observed_loss,
            best_accuracy=state.best_observed_accuracy,
            initial_accuracy=state.initial_accuracy,
            best_scale=state.best_scale,
            checkpoint_name=checkpoint_name,
        )


class GracefulShutdown:
    """Turn SIGINT/SIGTERM into a cooperative stop request."""

    def __init__(self, token: CancellationToken):
        self.token = token
        self._previous: dict[int, Any] = {}

    def install_handlers(self) -> None:
        """Install signal handlers."""
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous[signum] = signal.signal(signum, self._handle_signal)

    def restore_handlers(self) -> None:
        """Reinstall the handlers that were active before install_handlers."""
        for signum, handler in self._previous.items():
            if handler is not None:
                signal.signal(signum, handler)
        self._previous.clear()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        """Handle shutdown signal."""
        if self.token.stop_requested:
            sys.exit(1)  # Force exit on second signal

        self.token.request_stop(f"signal {int(signum)}")
        print(f"\nShutdown requested (signal {int(signum)}), stopping after the current iteration...")

    @property
    def should_stop(self) -> bool:
        return self.token.stop_requested
