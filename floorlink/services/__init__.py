"""
Services coordinating the map and store repositories.
"""

from floorlink.services.link_manager import LinkManager
from floorlink.services.map_service import MapService
from floorlink.services.reconciler import AuditReport, Reconciler, RepairReport

__all__ = ["AuditReport", "LinkManager", "MapService", "Reconciler", "RepairReport"]
