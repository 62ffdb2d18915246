"""
CLI entrypoint for the radar decay sweep. Run from cron, e.g.:

  python -m trustgate.radar_decay

Or daily: 0 3 * * * cd /path/to/trustgate && .venv/bin/python -m trustgate.radar_decay
"""

import logging
import sys

from trustgate.core.config import get_settings
from trustgate.core.database import SessionLocal
from trustgate.core.events import EventBus
from trustgate.services.radar import RadarEngine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Decay radar axes not updated within RADAR_INACTIVITY_DAYS."""
    settings = get_settings()
    # Decay publishes nothing, so a private bus is enough.
    engine = RadarEngine.from_settings(settings, SessionLocal, EventBus())
    try:
        decayed = engine.apply_decay()
        logger.info("Radar decay completed: decayed_count=%s", decayed)
        return 0
    except Exception as e:
        logger.exception("Radar decay job failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
