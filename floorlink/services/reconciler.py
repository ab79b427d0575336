"""
Audit and repair of Store <-> Feature links.

The link manager writes stores and maps one document at a time, so a crash
or a backend failure between two writes leaves a store without its feature
link, or a feature pointing at a store that no longer exists. The
reconciler finds these states and moves them back to agreement.

It takes no lock. Every repair write re-reads the map first and only ever
points a feature at a store it has just loaded, so a repair that loses a
race against a legitimate relink is corrected by the next run.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from floorlink.config.logging_config import get_logger
from floorlink.data.map_repository import MapRepository
from floorlink.data.models import Map, Store
from floorlink.data.store_repository import StoreRepository
from floorlink.domain.feature_editor import find_feature, is_unchanged, with_store_link, without_store_link
from floorlink.services.base_service import BaseService
from floorlink.utils.error_handling import NotFoundError

logger = get_logger(__name__)

# Audit statuses
OK = "ok"
MISSING_LINK = "missing_link"
ORPHAN_LINK = "orphan_link"
ERROR = "error"

# Repair statuses
FIXED = "fixed"
SKIPPED = "skipped"
CLEARED = "cleared"

# Error reasons
MAP_NOT_FOUND = "map_not_found"
FEATURE_NOT_FOUND = "feature_not_found"
STORE_NOT_FOUND = "store_not_found"
STORE_POINTS_ELSEWHERE = "store_points_elsewhere"
CONFLICT = "conflict"
UNEXPECTED = "unexpected"


@dataclass
class LinkStatus:
    """State of one link, seen from a store or from an orphaned feature."""

    store_id: str
    status: str
    store_name: Optional[str] = None
    map_id: Optional[str] = None
    feature_id: Optional[str] = None
    linked_store_id: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class AuditReport:
    """Result of a read-only audit."""

    entries: List[LinkStatus] = field(default_factory=list)
    orphans: List[LinkStatus] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for e in self.entries if e.status == status)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def needs_fix(self) -> int:
        return self.count(MISSING_LINK)

    @property
    def is_consistent(self) -> bool:
        return self.total == self.count(OK) and not self.orphans

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "ok": self.count(OK),
            "needs_fix": self.needs_fix,
            "errors": self.count(ERROR),
            "orphans": len(self.orphans),
            "report": [e.to_dict() for e in self.entries],
            "orphan_links": [o.to_dict() for o in self.orphans],
        }


@dataclass
class RepairReport:
    """Result of a repair run."""

    entries: List[LinkStatus] = field(default_factory=list)
    orphans: List[LinkStatus] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for e in self.entries if e.status == status)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def fixed(self) -> int:
        return self.count(FIXED)

    @property
    def skipped(self) -> int:
        return self.count(SKIPPED)

    @property
    def errors(self) -> int:
        return self.count(ERROR)

    @property
    def cleared(self) -> int:
        return sum(1 for o in self.orphans if o.status == CLEARED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "fixed": self.fixed,
            "skipped": self.skipped,
            "errors": self.errors,
            "cleared": self.cleared,
            "results": [e.to_dict() for e in self.entries],
            "orphan_links": [o.to_dict() for o in self.orphans],
        }


class Reconciler(BaseService):
    """
    Audit and repair the links between stores and features.

    By default both passes cover every store and every map. Passing
    ``owner_id`` limits them to that owner's stores and maps; a store whose
    map belongs to someone else is then reported as ``map_not_found`` and
    never repaired.
    """

    def __init__(
        self,
        map_repository: MapRepository,
        store_repository: StoreRepository,
        clear_orphans: bool = True
    ):
        """
        Initialize the reconciler.

        Args:
            map_repository: Repository of Map documents
            store_repository: Repository of Store documents
            clear_orphans: Whether repair clears feature storeIds no store references back
        """
        super().__init__(map_repository, store_repository)
        self.clear_orphans = clear_orphans

    async def audit(self, owner_id: Optional[str] = None) -> AuditReport:
        """Report the link status of every store, and every orphaned feature link. Never writes."""
        report = AuditReport()

        for store in await self._stores_in_scope(owner_id):
            status, _ = await self._inspect(store, owner_id)
            report.entries.append(status)

        report.orphans = await self._find_orphans(owner_id)

        logger.info(
            f"Audit: {report.total} stores, {report.count(OK)} ok, {report.needs_fix} missing links, "
            f"{report.count(ERROR)} errors, {len(report.orphans)} orphan links"
        )
        return report

    async def repair(self, owner_id: Optional[str] = None) -> RepairReport:
        """
        Link every store whose feature does not point back at it.

        Stores already linked are skipped. Stores whose map or feature cannot
        be resolved are reported as errors and left alone, as are stores whose
        feature is held by another store that references it back. Afterwards,
        feature links naming no store (or a store pointing elsewhere) are
        cleared when ``clear_orphans`` is set.

        Running repair twice without intervening writes fixes nothing the
        second time.
        """
        report = RepairReport()

        for store in await self._stores_in_scope(owner_id):
            report.entries.append(await self._repair_store(store, owner_id))

        if self.clear_orphans:
            for orphan in await self._find_orphans(owner_id):
                report.orphans.append(await self._clear_orphan(orphan, owner_id))

        logger.info(
            f"Repair: {report.total} stores, {report.fixed} fixed, {report.skipped} skipped, "
            f"{report.errors} errors, {report.cleared} orphan links cleared"
        )
        return report

    async def _stores_in_scope(self, owner_id: Optional[str]) -> List[Store]:
        filter_params = {"owner_id": owner_id} if owner_id is not None else None
        return await self.stores.list_stores(filter_params)

    async def _inspect(self, store: Store, owner_id: Optional[str]) -> Tuple[LinkStatus, Optional[Map]]:
        status = LinkStatus(
            store_id=store.id,
            store_name=store.name,
            map_id=store.map_id,
            feature_id=store.feature_id,
            status=ERROR,
        )

        try:
            map_ = await self.maps.get_map(store.map_id, owner_id)
        except NotFoundError:
            status.error = MAP_NOT_FOUND
            status.message = f"Map {store.map_id} not found"
            return status, None
        except Exception as e:
            status.error = UNEXPECTED
            status.message = str(e)
            self.handle_error(e, "inspect", {"store_id": store.id, "map_id": store.map_id})
            return status, None

        feature = find_feature(map_.features, store.feature_id)
        if feature is None:
            status.error = FEATURE_NOT_FOUND
            status.message = f"Feature {store.feature_id} not found in map {store.map_id}"
            return status, map_

        status.linked_store_id = feature.store_id
        status.status = OK if feature.store_id == store.id else MISSING_LINK
        return status, map_

    async def _repair_store(self, store: Store, owner_id: Optional[str]) -> LinkStatus:
        # Fresh read per store so fixes made earlier in this pass are visible
        status, map_ = await self._inspect(store, owner_id)

        if status.status == OK:
            status.status = SKIPPED
            status.message = "Already linked"
            return status
        if status.status == ERROR:
            return status

        try:
            if status.linked_store_id:
                claimant = await self.stores.find_store(status.linked_store_id)
                if claimant is not None and (claimant.map_id, claimant.feature_id) == (store.map_id, store.feature_id):
                    status.status = ERROR
                    status.error = CONFLICT
                    status.message = (
                        f"Feature {store.feature_id} in map {store.map_id} is linked to store {claimant.id}, "
                        f"which also references it"
                    )
                    logger.warning(f"Not repairing store {store.id}: {status.message}")
                    return status

            await self.maps.replace_features(
                store.map_id, owner_id, with_store_link(map_.features, store.feature_id, store.id)
            )
        except Exception as e:
            status.status = ERROR
            status.error = UNEXPECTED
            status.message = str(e)
            self.handle_error(e, "repair", {"store_id": store.id, "map_id": store.map_id})
            return status

        status.status = FIXED
        status.message = "Store linked to feature"
        status.linked_store_id = store.id
        logger.info(f"Linked store {store.id} to feature {store.feature_id} in map {store.map_id}")
        return status

    async def _find_orphans(self, owner_id: Optional[str]) -> List[LinkStatus]:
        """Feature links whose store does not exist or references another feature."""
        stores = {s.id: s for s in await self.stores.list_stores()}
        orphans = []

        for map_ in await self.maps.list_maps(owner_id):
            for feature in map_.features:
                if not feature.store_id:
                    continue
                store = stores.get(feature.store_id)
                if store is not None and (store.map_id, store.feature_id) == (map_.id, feature.id):
                    continue
                orphans.append(LinkStatus(
                    store_id=feature.store_id,
                    status=ORPHAN_LINK,
                    store_name=store.name if store else None,
                    map_id=map_.id,
                    feature_id=feature.id,
                    linked_store_id=feature.store_id,
                    error=STORE_NOT_FOUND if store is None else STORE_POINTS_ELSEWHERE,
                ))

        return orphans

    async def _clear_orphan(self, orphan: LinkStatus, owner_id: Optional[str]) -> LinkStatus:
        try:
            # A store created after the scan may have claimed this feature legitimately
            store = await self.stores.find_store(orphan.store_id)
            if store is not None and (store.map_id, store.feature_id) == (orphan.map_id, orphan.feature_id):
                orphan.status = SKIPPED
                orphan.error = None
                orphan.message = "Store now references this feature"
                return orphan

            map_ = await self.maps.get_map(orphan.map_id, owner_id)
            features = without_store_link(map_.features, orphan.feature_id, orphan.store_id)
            if is_unchanged(map_.features, features):
                orphan.status = SKIPPED
                orphan.error = None
                orphan.message = "Feature no longer carries this storeId"
                return orphan
            await self.maps.replace_features(orphan.map_id, owner_id, features)
        except Exception as e:
            orphan.status = ERROR
            orphan.error = UNEXPECTED
            orphan.message = str(e)
            self.handle_error(e, "clear_orphan", {"store_id": orphan.store_id, "map_id": orphan.map_id})
            return orphan

        orphan.status = CLEARED
        orphan.message = "Orphan storeId removed from feature"
        logger.info(f"Cleared orphan storeId {orphan.store_id} from feature {orphan.feature_id} in map {orphan.map_id}")
        return orphan
