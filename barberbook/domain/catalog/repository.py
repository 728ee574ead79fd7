"""Service catalog repository - read-only lookups for bookable services"""

from sqlalchemy.orm import Session

from ...models import Service


class CatalogRepository:
    """Repository for service catalog lookups"""

    @staticmethod
    def get_services(db: Session, service_ids: list[int]) -> dict[int, Service]:
        """Map of id -> Service for the ids that exist"""
        if not service_ids:
            return {}
        services = db.query(Service).filter(Service.id.in_(set(service_ids))).all()
        return {s.id: s for s in services}

    @staticmethod
    def total_duration(db: Session, service_ids: list[int]) -> int:
        """Sum of durations in minutes; repeated ids count once per occurrence"""
        services = CatalogRepository.get_services(db, service_ids)
        return sum(services[sid].duration_minutes for sid in service_ids if sid in services)
