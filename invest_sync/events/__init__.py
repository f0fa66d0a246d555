"""Update propagation: event bus, cross-tab channel, debouncing and polling."""

from invest_sync.events.auto_refresh import AutoRefresh  # noqa: F401
from invest_sync.events.bus import EventBus  # noqa: F401
from invest_sync.events.channel import InMemoryChannel  # noqa: F401
from invest_sync.events.debounce import DebouncedPublisher  # noqa: F401
from invest_sync.events.types import UpdateEvent, UpdateEventType  # noqa: F401
