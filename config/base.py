"""Base class for file-backed configuration sections."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict


class BaseConfig(BaseModel):
    """
    Configuration section that can live in a YAML file.

    Unknown keys are rejected so that a misspelled tolerance or retry
    setting fails loudly instead of silently falling back to its default.
    One YAML file may hold several sections keyed by name (``retry:``,
    ...); ``from_yaml(path, section=...)`` picks one of them.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )

    @classmethod
    def from_yaml(cls, path: Path | str, section: Optional[str] = None) -> "BaseConfig":
        """
        Load and validate a section from a YAML file.

        Args:
            path: YAML file
            section: Top-level key holding this section (whole file if None)

        Raises:
            FileNotFoundError: If the file doesn't exist
            KeyError: If ``section`` is not in the file
            pydantic.ValidationError: If values are invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if section is not None:
            if section not in data:
                raise KeyError(f"Section '{section}' not found in {path}")
            data = data[section] or {}

        return cls(**data)

    def to_yaml(self, path: Path | str, section: Optional[str] = None) -> None:
        """Write this section to a YAML file, optionally nested under ``section``."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.to_dict()
        if section is not None:
            data = {section: data}

        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-compatible dict of the section."""
        return self.model_dump(mode="json")
