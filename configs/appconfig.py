# Application Configuration
# Server settings, logging and user data locations, overridable from the environment
import os
from pathlib import Path

BASE_DIR = Path(__file__).parent.parent


class AppConfig:
    """Centralized application configuration"""

    # User data (saved trajectories, demo output)
    USER_DIR = Path(os.environ.get("IK_TOOLS_USER_DIR", BASE_DIR / "user"))
    TRAJECTORIES_DIR = USER_DIR / "trajectories"

    # Bundled robot descriptions
    ROBOTS_DIR = BASE_DIR / "demo" / "test_robots"

    # Server
    BACKEND_HOST = os.environ.get("IK_TOOLS_HOST", "0.0.0.0")
    BACKEND_PORT = int(os.environ.get("IK_TOOLS_PORT", 8021))
    BACKEND_RELOAD = os.environ.get("IK_TOOLS_RELOAD", "1") == "1"

    # Logging
    LOG_LEVEL = os.environ.get("IK_TOOLS_LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("IK_TOOLS_LOG_FILE")  # None: console + in-memory buffer only
    LOG_BUFFER_SIZE = 1000

    @classmethod
    def backend_url(cls) -> str:
        return f"http://localhost:{cls.BACKEND_PORT}"


# Module-level aliases for easy imports
USER_DIR = AppConfig.USER_DIR
TRAJECTORIES_DIR = AppConfig.TRAJECTORIES_DIR
ROBOTS_DIR = AppConfig.ROBOTS_DIR
BACKEND_HOST = AppConfig.BACKEND_HOST
BACKEND_PORT = AppConfig.BACKEND_PORT
BACKEND_RELOAD = AppConfig.BACKEND_RELOAD
LOG_LEVEL = AppConfig.LOG_LEVEL
LOG_FILE = AppConfig.LOG_FILE
LOG_BUFFER_SIZE = AppConfig.LOG_BUFFER_SIZE
