"""Cluster manager command line interface."""

import typer
from pydantic import ValidationError

from clustermanager.config import Settings


def load_settings(**overrides: object) -> Settings:
    """Load Settings from the environment, applying non-None CLI overrides."""
    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Error: invalid configuration:\n{e}")
        raise typer.Exit(1)
    updates = {key: value for key, value in overrides.items() if value is not None}
    return settings.model_copy(update=updates) if updates else settings
