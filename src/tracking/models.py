from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Location(BaseModel):
    """A resolved position with its accuracy radius in meters."""
    latitude: float
    longitude: float
    accuracy: float


class ReportedLocation(BaseModel):
    """Location as sent by a client. Every field may be missing."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class DeviceDistance(BaseModel):
    """Distance (meters) of one device from the report's base location."""
    id: Optional[str] = None
    distance: float


class LocationReportIn(BaseModel):
    """
    Raw body of POST /location.

    Fields are loose; ingestion validates them and reports
    InvalidLocation / InvalidDevices rather than a 422.
    """
    location: Optional[Any] = None
    devices: Any = None
    flag: Optional[Any] = None


@dataclass
class DirectReport:
    """Report whose base is the caller-supplied location."""
    location: Location
    devices: List[DeviceDistance] = field(default_factory=list)


@dataclass
class FlaggedReport:
    """Report whose base is a stored flag, looked up by name."""
    flag: str
    devices: List[DeviceDistance] = field(default_factory=list)


LocationReport = Union[DirectReport, FlaggedReport]


class FlagLocation(BaseModel):
    """Named override location with a distance multiplier."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    multiplier: float

    def base_location(self, default_accuracy: float) -> Location:
        accuracy = self.accuracy if self.accuracy is not None else default_accuracy
        return Location(latitude=self.latitude, longitude=self.longitude, accuracy=accuracy)


class LocationTimestamp(BaseModel):
    """One device's derived location at one instant (epoch millis)."""
    id: str
    timestamp: int
    location: Location


class Trackee(BaseModel):
    """Tracked entity. Only the id is known; other fields pass through."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
