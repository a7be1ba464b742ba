import re
from dataclasses import dataclass

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_:.-]*$")


@dataclass
class QueueConfig:
    # Table name for SQL stores, stream key for Redis stores.
    name: str = "offline_mutations"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.name or not _NAME_RE.match(self.name):
            raise ValueError(
                f"name must be a non-empty identifier-like string, got {self.name!r}"
            )
