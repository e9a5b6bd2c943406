"""
Default namespaces and invalidation rules for the travel planner.

Provider namespaces get a stale window of twice their fresh TTL so a
slow provider never blocks a caller that has seen the data before.
"""

from datetime import timedelta

from tripcache.services.cache import CacheNamespaceConfig
from tripcache.services.events import CacheEvent, DestinationChanged, EventPayload, InvalidationRule
from tripcache.services.registry import CacheRegistry

OPENAI_API = "openai-api"
GOOGLE_MAPS_API = "google-maps-api"
TRIPADVISOR_API = "tripadvisor-api"
RECOMMENDATIONS_API = "recommendations-api"
GENERAL_API = "general-api"

CONVERSATION_CONTEXT = "conversation-context"
USER_MESSAGES = "user-messages"
USER_PREFERENCES = "user-preferences"
ITINERARY = "itinerary"
ITINERARY_SUGGESTIONS = "itinerary-suggestions"


def _api(name: str, ttl: timedelta, max_size: int, compression: bool = True) -> CacheNamespaceConfig:
    return CacheNamespaceConfig(
        name=name,
        ttl=ttl,
        stale_ttl=ttl * 2,
        max_size=max_size,
        persistence=True,
        user_scoped=True,
        compression=compression,
    )


DEFAULT_NAMESPACES: list[CacheNamespaceConfig] = [
    _api(OPENAI_API, timedelta(minutes=30), 200),
    # Coordinates and addresses do not compress well
    _api(GOOGLE_MAPS_API, timedelta(hours=24), 500, compression=False),
    _api(TRIPADVISOR_API, timedelta(hours=1), 300),
    _api(RECOMMENDATIONS_API, timedelta(minutes=30), 100),
    _api(GENERAL_API, timedelta(minutes=15), 150),
    CacheNamespaceConfig(
        name=CONVERSATION_CONTEXT,
        ttl=timedelta(hours=1),
        max_size=50,
        persistence=True,
        user_scoped=True,
    ),
    CacheNamespaceConfig(
        name=USER_MESSAGES,
        ttl=timedelta(days=7),
        max_size=200,
        persistence=True,
        user_scoped=True,
    ),
    CacheNamespaceConfig(
        name=USER_PREFERENCES,
        ttl=timedelta(days=30),
        max_size=100,
        persistence=True,
        user_scoped=True,
    ),
    CacheNamespaceConfig(
        name=ITINERARY,
        ttl=timedelta(hours=2),
        max_size=10,
        persistence=True,
        user_scoped=True,
    ),
    CacheNamespaceConfig(
        name=ITINERARY_SUGGESTIONS,
        ttl=timedelta(minutes=10),
        max_size=5,
        user_scoped=True,
    ),
]


def _previous_destination(payload: EventPayload) -> str | None:
    if isinstance(payload, DestinationChanged) and payload.previous_destination:
        return payload.previous_destination
    return None


DEFAULT_RULES: list[InvalidationRule] = [
    InvalidationRule(
        trigger=CacheEvent.DESTINATION_CHANGE,
        targets=[CONVERSATION_CONTEXT, RECOMMENDATIONS_API, ITINERARY_SUGGESTIONS],
    ),
    # Place searches for the old destination are no longer relevant
    InvalidationRule(
        trigger=CacheEvent.DESTINATION_CHANGE,
        targets=[GOOGLE_MAPS_API, TRIPADVISOR_API],
        key_pattern=_previous_destination,
    ),
    InvalidationRule(
        trigger=CacheEvent.CONVERSATION_RESET,
        targets=[CONVERSATION_CONTEXT, USER_MESSAGES],
    ),
    InvalidationRule(
        trigger=CacheEvent.PREFERENCES_UPDATE,
        targets=[RECOMMENDATIONS_API, ITINERARY_SUGGESTIONS],
    ),
    InvalidationRule(
        trigger=CacheEvent.ITINERARY_CHANGE,
        targets=[ITINERARY_SUGGESTIONS],
    ),
]


def register_defaults(registry: CacheRegistry) -> None:
    """Register every default namespace."""
    for config in DEFAULT_NAMESPACES:
        registry.register_namespace(config)


def install_default_rules(registry: CacheRegistry) -> None:
    """Subscribe the default invalidation rules."""
    for rule in DEFAULT_RULES:
        registry.add_invalidation_rule(rule)
