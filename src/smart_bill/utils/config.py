"""
Configuration utilities for the Smart Bill engine and CLI.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


class Config:
    """Configuration manager for the Smart Bill project."""

    def __init__(self, env_file: Optional[str] = None) -> None:
        """Initialize configuration.

        If an env_file path is provided, load environment variables from it.
        Otherwise, do not auto-load a .env file to keep defaults predictable.
        """
        self.env_file = env_file
        self._load_environment()
        self._config = self._load_config()

    def _load_environment(self) -> None:
        """Load environment variables from explicit .env file if provided."""
        if not self.env_file:
            return
        env_path = Path(self.env_file)
        if env_path.exists():
            load_dotenv(env_path)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        return {
            # Core settings
            "log_level": self._get_str("LOG_LEVEL", default="INFO"),
            # Billing defaults
            "currency": self._get_str("BILLING_CURRENCY", default="USD"),
            "decimal_places": self._get_int("BILLING_DECIMAL_PLACES", default=2),
            "internal_precision": self._get_int("BILLING_INTERNAL_PRECISION", default=6),
            "round_off": self._get_bool("BILLING_ROUND_OFF", default=True),
            "clamp_discounts": self._get_bool("BILLING_CLAMP_DISCOUNTS", default=False),
            "billing_id_prefix": self._get_str("BILLING_ID_PREFIX", default="BILL"),
            "tax_preset": self._get_str("BILLING_TAX_PRESET", default=""),
        }

    def _get_str(self, key: str, default: str = "") -> str:
        """Get string configuration value."""
        if self.env_file is None:
            return default
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int = 0) -> int:
        """Get integer configuration value."""
        if self.env_file is None:
            return default
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def _get_bool(self, key: str, default: bool = False) -> bool:
        """Get boolean configuration value."""
        if self.env_file is None:
            return default
        value = os.getenv(key, str(default)).lower()
        return value in ("true", "1", "yes", "on")

    def billing_defaults(self) -> Dict[str, Any]:
        """Return the subset of settings that seeds a BillingConfiguration."""
        defaults = {
            key: self._config[key]
            for key in (
                "currency",
                "decimal_places",
                "internal_precision",
                "round_off",
                "clamp_discounts",
                "billing_id_prefix",
            )
        }
        # Empty string means "no preset"
        defaults["tax_preset"] = self._config["tax_preset"] or None
        return defaults

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if configuration key exists."""
        return key in self._config
