"""Structured run logging for AdapterGym."""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import click


class RunLogger:
    """JSONL-based structured logger for experiment runs.

    Every event goes to ``events.jsonl`` in the run directory. When
    ``echo`` is set, a human-readable message is also printed to the console.
    """

    def __init__(
        self,
        run_dir: Path | str | None = None,
        run_id: str | None = None,
        echo: bool = True,
    ):
        self.run_id = run_id or datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_") + uuid.uuid4().hex[:8]
        self.run_dir = Path(run_dir) if run_dir else Path("runs") / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.echo = echo
        self._log_file = self.run_dir / "events.jsonl"

    def log(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        message: str | None = None,
        color: str | None = None,
    ) -> None:
        """Log a structured event, optionally echoing a console message."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "run_id": self.run_id,
            "event": event_type,
            **(data or {}),
        }
        with open(self._log_file, "a") as f:
            f.write(json.dumps(record) + "\n")

        if message and self.echo:
            click.secho(message, fg=color)

    def log_config(self, config: dict[str, Any]) -> None:
        """Log run configuration."""
        self.log("config", {"config": config})
        (self.run_dir / "config.json").write_text(json.dumps(config, indent=2))

    def log_artifact(self, name: str, path: str) -> None:
        """Log artifact path."""
        self.log("artifact", {"name": name, "path": path})

    def read_events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        """Read back logged events, optionally filtered by type."""
        if not self._log_file.exists():
            return []
        events = []
        with open(self._log_file) as f:
            for line in f:
                if not line.strip():
                    continue
                record = json.loads(line)
                if event_type is None or record["event"] == event_type:
                    events.append(record)
        return events

