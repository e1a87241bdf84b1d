"""Source registry for HomeStats Hub.

Register poller types by name. The station loads dashboard.yaml and
instantiates the right classes by looking them up here.

Usage:
    @register_source("pihole")
    class PiholeSource(DataSource):
        ...
"""

import logging

logger = logging.getLogger(__name__)

SOURCE_REGISTRY = {}


def register_source(name):
    """Decorator to register a data source class by type name."""
    def decorator(cls):
        SOURCE_REGISTRY[name] = cls
        cls.source_type = name
        logger.debug("Registered source type: %s -> %s", name, cls.__name__)
        return cls
    return decorator


def get_source_class(name):
    """Return the class registered under `name`, or None."""
    return SOURCE_REGISTRY.get(name)
