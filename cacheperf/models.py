from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Optional


@dataclass
class SampleItem:
    id: Optional[int]
    name: str
    description: str
    price: float
    category: str

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            price=row["price"],
            category=row["category"],
        )

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get("id"),
            name=data["name"],
            description=data.get("description"),
            price=data["price"],
            category=data["category"],
        )

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class Measurement:
    """One recorded observation of a measured API call. Never mutated once stored."""

    api_name: str
    cache_enabled: bool
    response_time_ms: int
    cache_hit: bool
    request_count: int = 1
    created_at: Optional[datetime] = None
    id: Optional[int] = field(default=None, compare=False)

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row["id"],
            api_name=row["api_name"],
            cache_enabled=bool(row["cache_enabled"]),
            response_time_ms=row["response_time_ms"],
            cache_hit=bool(row["cache_hit"]),
            request_count=row["request_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "apiName": self.api_name,
            "cacheEnabled": self.cache_enabled,
            "responseTimeMs": self.response_time_ms,
            "cacheHit": self.cache_hit,
            "requestCount": self.request_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


# Seeded into an empty sample_data table on startup
SAMPLE_ITEMS = [
    SampleItem(None, "Product A", "High-quality product A", 100, "Electronics"),
    SampleItem(None, "Product B", "Premium product B", 200, "Electronics"),
    SampleItem(None, "Service X", "Professional service X", 150, "Services"),
    SampleItem(None, "Service Y", "Basic service Y", 75, "Services"),
    SampleItem(None, "Item 1", "Standard item 1", 50, "General"),
    SampleItem(None, "Item 2", "Standard item 2", 60, "General"),
    SampleItem(None, "Premium Product", "Top-tier premium product", 500, "Electronics"),
    SampleItem(None, "Basic Service", "Essential basic service", 25, "Services"),
]
