from os import getenv
from pathlib import Path

PORT: int = int(getenv("PORT", 8000))

# The server is meant to be reached from other devices on the local network
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# Static assets (the player page) served next to the stream
PUBLIC: Path = Path(getenv("REEL_PUBLIC") or Path(__file__).parent / "public")

LOG_LEVEL: str = getenv("REEL_LOG_LEVEL", "debug")

LOG_FILE: str | None = getenv("REEL_LOG_FILE") or None

LOG_REQUESTS: bool = getenv("REEL_LOG_REQUESTS", "1") == "1"

# EOF
