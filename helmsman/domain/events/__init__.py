"""
Domain Events Package

Architectural Intent:
- Contains the domain event base class
- Concrete events live next to the aggregates that raise them
  (entities.traffic_shift, entities.failover_record)
"""

from helmsman.domain.events.event_base import DomainEvent

__all__ = ["DomainEvent"]
