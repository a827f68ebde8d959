"""
Configuration
"""
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

_PACKAGE_DIR = Path(__file__).resolve().parent
_DEFAULT_DATA_DIR = _PACKAGE_DIR / "data"


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


class Settings(BaseModel):
    """Application settings."""

    # Combat pacing
    enemy_turn_delay_seconds: float = float(os.getenv("ENEMY_TURN_DELAY_SECONDS", "1.0"))

    # Dice (unset means a fresh system seed)
    dice_seed: Optional[int] = _optional_int(os.getenv("DICE_SEED"))

    # Content
    content_dir: str = os.getenv("CONTENT_DIR", str(_DEFAULT_DATA_DIR))
    adventure_file: str = os.getenv(
        "ADVENTURE_FILE", str(_DEFAULT_DATA_DIR / "adventure.json")
    )

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_history_limit: int = int(os.getenv("LOG_HISTORY_LIMIT", "200"))

    # Tool server
    mcp_transport: Literal["stdio", "sse", "streamable-http"] = os.getenv(
        "MCP_TRANSPORT", "stdio"
    )
    mcp_host: str = os.getenv("MCP_HOST", "127.0.0.1")
    mcp_port: int = int(os.getenv("MCP_PORT", "9102"))


settings = Settings()


def validate_config() -> bool:
    """
    Check that configured content paths exist.

    Returns:
        bool: True when the content directory and adventure file are present
    """
    if not Path(settings.content_dir).is_dir():
        print(f"Warning: content directory not found: {settings.content_dir}")
        return False

    if not Path(settings.adventure_file).exists():
        print(f"Warning: adventure file not found: {settings.adventure_file}")
        return False

    return True
