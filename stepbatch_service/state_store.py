"""
Session state persistence.

Saves the three scalars needed to resume counting (mode, max batch delay,
step count) to a small YAML file, under the keys ``state``, ``latency`` and
``steps``.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml

from stepbatch_core import PersistedSession

logger = logging.getLogger(__name__)


class StateStore:
    """YAML-backed store for one PersistedSession."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, session: PersistedSession) -> None:
        """Write the session, creating parent directories as needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            yaml.safe_dump(session.to_dict(), f, default_flow_style=False)
        tmp_path.replace(self.path)

        logger.info(
            f"💾 Session saved to {self.path} "
            f"(mode={session.mode.name}, steps={session.step_count})"
        )

    def load(self) -> Optional[PersistedSession]:
        """
        Read the saved session.

        Returns:
            PersistedSession, or None if nothing was saved yet

        Raises:
            ValueError: If the file exists but is not a valid session
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {self.path}: {e}")

        if not isinstance(data, dict):
            raise ValueError(f"Invalid session file {self.path}: expected a mapping")

        return PersistedSession.from_dict(data)

    def clear(self) -> None:
        """Remove the saved session, if any."""
        if self.path.exists():
            self.path.unlink()
