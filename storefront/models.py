"""
Expose ORM models for Django's auto-discovery while keeping real definitions
under the infrastructure module.
"""

from storefront.infra.models import *
from storefront.infra.event_store import EventStore
