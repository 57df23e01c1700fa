"""Per-user directories for julials.

Config, logs and the default extension storage live in the platform
directories reported by platformdirs.
"""

import os
from pathlib import Path
from platformdirs import user_config_dir, user_data_dir

APP_NAME = "julials"


class GlobalPath:
    """Global path management for julials directories."""

    @classmethod
    def home(cls) -> str:
        """Get user home directory, with override for testing."""
        return os.environ.get("JULIALS_TEST_HOME", str(Path.home()))

    @classmethod
    def data(cls) -> str:
        return user_data_dir(APP_NAME)

    @classmethod
    def log(cls) -> str:
        """Log file directory."""
        return str(Path(cls.data()) / "log")

    @classmethod
    def storage(cls) -> str:
        """Default extension storage (compiled server, scratch files)."""
        return str(Path(cls.data()) / "storage")

    @classmethod
    def config(cls) -> str:
        return user_config_dir(APP_NAME)
