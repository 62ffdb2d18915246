"""Process-wide service instances, exposed as FastAPI dependencies.

Each factory is cached so every request (and the lifespan hook) shares one
event bus, one queue and one set of per-repository counters. Tests replace
them through ``app.dependency_overrides``.
"""

from functools import lru_cache

from trustgate.core.config import get_settings
from trustgate.core.database import SessionLocal
from trustgate.core.events import EventBus
from trustgate.services.exploit_validator import ExploitValidatorAdapter
from trustgate.services.governance import GovernanceEngine
from trustgate.services.hypothesis_validator import HypothesisValidator
from trustgate.services.orchestrator import ScanOrchestrator
from trustgate.services.radar import RadarEngine
from trustgate.services.scan_queue import ScanQueue
from trustgate.services.static_analysis import PatternHypothesisGenerator


@lru_cache
def get_event_bus() -> EventBus:
    settings = get_settings()
    return EventBus(
        max_attempts=settings.EVENT_BUS_MAX_ATTEMPTS,
        max_failed=settings.EVENT_BUS_MAX_FAILED,
    )



@lru_cache
def get_exploit_adapter() -> ExploitValidatorAdapter:
    return ExploitValidatorAdapter.from_settings(get_settings())


@lru_cache
def get_orchestrator() -> ScanOrchestrator:
    settings = get_settings()
    return ScanOrchestrator.from_settings(
        settings,
        session_factory=SessionLocal,
        generator=PatternHypothesisGenerator(),
        ai_validator=HypothesisValidator(settings),
        exploit_adapter=get_exploit_adapter(),
    )


@lru_cache
def get_scan_queue() -> ScanQueue:
    return ScanQueue(
        runner=get_orchestrator().scan,
        max_concurrent=get_settings().SCAN_QUEUE_MAX_CONCURRENT,
    )


@lru_cache
def get_radar_engine() -> RadarEngine:
    return RadarEngine.from_settings(get_settings(), SessionLocal, get_event_bus())


@lru_cache
def get_governance_engine() -> GovernanceEngine:
    return GovernanceEngine.from_settings(get_settings(), SessionLocal, get_event_bus())
