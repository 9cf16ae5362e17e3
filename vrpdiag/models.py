"""
Core data models for unassigned-job diagnostics.
Input models use Pydantic for validation; evaluation records are plain dataclasses.
"""

from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import List, Optional, Dict, Set, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from .distance import Coordinates, RouteMatrix
from .exceptions import UnknownReferenceError
from .util.time_utils import to_minutes


class ReasonCode(str, Enum):
    """Fixed taxonomy of unassigned reasons."""
    NO_REASON_FOUND = "NO_REASON_FOUND"
    SKILL_CONSTRAINT = "SKILL_CONSTRAINT"
    TIME_WINDOW_CONSTRAINT = "TIME_WINDOW_CONSTRAINT"
    CAPACITY_CONSTRAINT = "CAPACITY_CONSTRAINT"
    REACHABLE_CONSTRAINT = "REACHABLE_CONSTRAINT"
    MAX_DISTANCE_CONSTRAINT = "MAX_DISTANCE_CONSTRAINT"
    SHIFT_TIME_CONSTRAINT = "SHIFT_TIME_CONSTRAINT"
    BREAK_CONSTRAINT = "BREAK_CONSTRAINT"
    LOCKING_CONSTRAINT = "LOCKING_CONSTRAINT"
    PRIORITY_CONSTRAINT = "PRIORITY_CONSTRAINT"
    AREA_CONSTRAINT = "AREA_CONSTRAINT"
    DISPATCH_CONSTRAINT = "DISPATCH_CONSTRAINT"
    TOUR_SIZE_CONSTRAINT = "TOUR_SIZE_CONSTRAINT"


class JobKind(str, Enum):
    """How a job's demand moves through the route."""
    DELIVERY = "delivery"  # loaded at route start, dropped at the stop
    PICKUP = "pickup"      # loaded at the stop, carried to route end


class RelationType(str, Enum):
    """Relation (lock) types between jobs and a vehicle."""
    ANY = "any"
    SEQUENCE = "sequence"
    STRICT = "strict"


class TimeWindow(BaseModel):
    """Time window in minutes from the planning origin."""
    start: float
    end: float

    @model_validator(mode="before")
    @classmethod
    def from_pair(cls, data):
        """Accept the compact [start, end] form."""
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError(f"Time window needs exactly two values, got {len(data)}")
            return {"start": data[0], "end": data[1]}
        return data

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_clock(cls, v):
        """Allow 'HH:MM' strings alongside minute offsets."""
        return to_minutes(v)

    @field_validator("end")
    @classmethod
    def end_after_start(cls, v, info):
        """Ensure end time is not before start time."""
        start = info.data.get("start")
        if start is not None and v < start:
            raise ValueError("End time must not be before start time")
        return v

    def contains(self, t: float) -> bool:
        return self.start <= t <= self.end


class Job(BaseModel):
    """Service or delivery task waiting for a route."""
    id: str
    location: int = Field(ge=0)  # index in the transport matrix
    coordinates: Optional[Coordinates] = None
    duration: float = Field(default=0.0, ge=0)  # service minutes
    skills: Set[str] = Field(default_factory=set)
    demand: List[float] = Field(default_factory=list)
    kind: JobKind = JobKind.DELIVERY
    time_windows: List[TimeWindow] = Field(default_factory=list)  # empty = always open
    order: Optional[int] = Field(default=None)  # lower = served earlier
    area_ids: Set[str] = Field(default_factory=set)
    break_eligible: bool = Field(default=True)

    @field_validator("demand")
    @classmethod
    def demand_non_negative(cls, v):
        if any(d < 0 for d in v):
            raise ValueError("Demand values must be non-negative")
        return v


class Break(BaseModel):
    """Mandatory vehicle break."""
    time_window: TimeWindow
    duration: float = Field(ge=0)


class Dispatch(BaseModel):
    """Vehicle dispatch: loading at a dispatch point before serving jobs."""
    location: Optional[int] = Field(default=None, ge=0)  # defaults to vehicle start
    time_window: TimeWindow
    duration: float = Field(default=0.0, ge=0)


class Area(BaseModel):
    """Allowed operating area given as a polygon of (lat, lon) pairs."""
    id: str
    shape: List[Tuple[float, float]] = Field(default_factory=list)


class Vehicle(BaseModel):
    """Vehicle with its limits."""
    id: str
    profile: str = Field(default="car")
    skills: Set[str] = Field(default_factory=set)
    capacity: List[float] = Field(default_factory=list)
    shift: TimeWindow
    start_location: int = Field(ge=0)
    end_location: Optional[int] = Field(default=None, ge=0)  # None = open route
    max_distance: Optional[float] = Field(default=None, ge=0)
    max_duration: Optional[float] = Field(default=None, ge=0)
    max_tour_size: Optional[int] = Field(default=None, ge=0)
    dispatch: Optional[Dispatch] = None
    breaks: List[Break] = Field(default_factory=list)
    allowed_areas: List[Area] = Field(default_factory=list)


class Relation(BaseModel):
    """Locks a list of jobs to a vehicle."""
    type: RelationType = RelationType.ANY
    jobs: List[str]
    vehicle_id: str


class Stop(BaseModel):
    """One served job in a route as reported by the optimizer."""
    job_id: str
    arrival: Optional[float] = None
    departure: Optional[float] = None
    load: List[float] = Field(default_factory=list)  # cumulative load after the stop
    distance: Optional[float] = None  # cumulative meters at arrival


class Route(BaseModel):
    """Ordered stops assigned to one vehicle."""
    vehicle_id: str
    start_time: Optional[float] = None
    stops: List[Stop] = Field(default_factory=list)
    distance: Optional[float] = None  # total meters as reported
    duration: Optional[float] = None  # total minutes as reported

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_clock(cls, v):
        return None if v is None else to_minutes(v)

    @property
    def job_ids(self) -> List[str]:
        return [stop.job_id for stop in self.stops]


class SearchViolation(BaseModel):
    """Violation evidence recorded by the optimizer during search."""
    code: ReasonCode
    vehicle_id: Optional[str] = None
    severity: Optional[float] = Field(default=None, ge=0)


class Problem(BaseModel):
    """Jobs, fleet, relations and transport matrices."""
    jobs: List[Job]
    fleet: List[Vehicle]
    relations: List[Relation] = Field(default_factory=list)
    matrices: Dict[str, RouteMatrix] = Field(default_factory=dict)  # profile -> matrix

    @model_validator(mode="after")
    def unique_ids(self):
        for label, ids in (("job", [j.id for j in self.jobs]), ("vehicle", [v.id for v in self.fleet])):
            seen = set()
            for item_id in ids:
                if item_id in seen:
                    raise ValueError(f"Duplicate {label} id '{item_id}'")
                seen.add(item_id)
        return self

    @cached_property
    def job_index(self) -> Dict[str, int]:
        """Position of each job in input order."""
        return {job.id: i for i, job in enumerate(self.jobs)}

    @cached_property
    def jobs_by_id(self) -> Dict[str, Job]:
        return {job.id: job for job in self.jobs}

    @cached_property
    def vehicles_by_id(self) -> Dict[str, Vehicle]:
        return {vehicle.id: vehicle for vehicle in self.fleet}

    @cached_property
    def relations_by_job(self) -> Dict[str, List[Relation]]:
        by_job: Dict[str, List[Relation]] = {}
        for relation in self.relations:
            for job_id in relation.jobs:
                by_job.setdefault(job_id, []).append(relation)
        return by_job

    @cached_property
    def relations_by_vehicle(self) -> Dict[str, List[Relation]]:
        by_vehicle: Dict[str, List[Relation]] = {}
        for relation in self.relations:
            by_vehicle.setdefault(relation.vehicle_id, []).append(relation)
        return by_vehicle

    def get_job(self, job_id: str) -> Job:
        try:
            return self.jobs_by_id[job_id]
        except KeyError:
            raise UnknownReferenceError(f"Unknown job id '{job_id}'") from None

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        try:
            return self.vehicles_by_id[vehicle_id]
        except KeyError:
            raise UnknownReferenceError(f"Unknown vehicle id '{vehicle_id}'") from None

    def matrix_for(self, vehicle: Vehicle) -> RouteMatrix:
        try:
            return self.matrices[vehicle.profile]
        except KeyError:
            raise UnknownReferenceError(
                f"No routing matrix for profile '{vehicle.profile}' of vehicle '{vehicle.id}'"
            ) from None

    def relations_for(self, job_id: str) -> List[Relation]:
        return self.relations_by_job.get(job_id, [])


class Solution(BaseModel):
    """Optimizer output: routes plus leftover jobs."""
    routes: List[Route] = Field(default_factory=list)
    unassigned: List[str] = Field(default_factory=list)
    search_violations: Dict[str, List[SearchViolation]] = Field(default_factory=dict)

    def assigned_job_ids(self) -> Set[str]:
        return {stop.job_id for route in self.routes for stop in route.stops}

    def route_for(self, vehicle_id: str) -> Optional[Route]:
        for route in self.routes:
            if route.vehicle_id == vehicle_id:
                return route
        return None


@dataclass(frozen=True)
class Evidence:
    """Outcome of one checker for one insertion attempt."""
    satisfied: bool
    severity: Optional[float] = None  # None for binary dimensions

    @classmethod
    def ok(cls) -> "Evidence":
        return cls(satisfied=True)

    @classmethod
    def violated(cls, severity: Optional[float] = None) -> "Evidence":
        return cls(satisfied=False, severity=severity)


@dataclass(frozen=True)
class ViolationRecord:
    """A violated constraint for one (job, vehicle) pair."""
    code: ReasonCode
    evidence: Evidence
    vehicle_id: Optional[str]
    position: Optional[int]  # None for route-level or search evidence

    @property
    def severity(self) -> Optional[float]:
        return self.evidence.severity


@dataclass(frozen=True)
class UnassignedEntry:
    """Final reason for one unassigned job."""
    job_id: str
    code: ReasonCode
    description: str
    vehicle_id: Optional[str] = None  # nearest miss, not serialized
    severity: Optional[float] = None
