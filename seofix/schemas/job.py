# seofix/schemas/job.py
import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from seofix import config
from seofix.errors import InvalidJobTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------
# Enums
# --------------------------------------------------
class JobState(str, Enum):
    queued = "queued"
    running = "running"
    completed = "completed"
    failed = "failed"


ACTIVE_STATES = frozenset({JobState.queued, JobState.running})
TERMINAL_STATES = frozenset({JobState.completed, JobState.failed})


class IssueCategory(str, Enum):
    images = "images"
    content = "content"
    seo = "seo"
    structure = "structure"
    internal_linking = "internal_linking"

    @classmethod
    def parse(cls, value) -> "IssueCategory":
        """
        Accepts enum values and the display labels used by the
        diagnostic engine ("Images", "Contenu", "Maillage interne", ...).
        """
        if isinstance(value, cls):
            return value

        key = str(value or "").strip().lower()
        try:
            return _CATEGORY_ALIASES[key]
        except KeyError:
            raise ValueError(f"Unsupported issue category: {value!r}") from None


_CATEGORY_ALIASES = {category.value: category for category in IssueCategory}
_CATEGORY_ALIASES.update({
    "contenu": IssueCategory.content,
    "seo metadata": IssueCategory.seo,
    "internal linking": IssueCategory.internal_linking,
    "internal-linking": IssueCategory.internal_linking,
    "maillage interne": IssueCategory.internal_linking,
})


class OutcomeKind(str, Enum):
    success = "success"
    failure = "failure"
    skipped = "skipped"


# --------------------------------------------------
# Inputs
# --------------------------------------------------
class OwnerKey(BaseModel):
    """
    Deduplication key: at most one active job per
    (shop, diagnostic, issue category).
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    shopId: str = Field(..., min_length=1)
    diagnosticId: str = Field(..., min_length=1)
    issueType: IssueCategory

    @field_validator("issueType", mode="before")
    @classmethod
    def _parse_issue_type(cls, value):
        return IssueCategory.parse(value)

    def key(self) -> str:
        # JSON keeps ids containing separators from colliding
        return json.dumps([self.shopId, self.diagnosticId, self.issueType.value], separators=(",", ":"))


class AffectedItem(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    type: Literal["product", "collection", "blog"]

    # Older diagnostic reports call this field "name"
    label: str = Field(..., validation_alias=AliasChoices("label", "name"))


class ItemOutcome(BaseModel):
    kind: OutcomeKind
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "ItemOutcome":
        return cls(kind=OutcomeKind.success)

    @classmethod
    def failure(cls, reason: str) -> "ItemOutcome":
        return cls(kind=OutcomeKind.failure, reason=reason)

    @classmethod
    def skipped(cls, reason: str) -> "ItemOutcome":
        return cls(kind=OutcomeKind.skipped, reason=reason)


class ItemFailure(BaseModel):
    itemId: str
    itemLabel: str
    reason: str


# --------------------------------------------------
# Job record
# --------------------------------------------------
class Job(BaseModel):
    id: str = Field(default_factory=lambda: f"job_{uuid.uuid4().hex}")

    shopId: str
    diagnosticId: str
    issueType: IssueCategory

    status: JobState = JobState.queued

    totalItems: int = Field(..., ge=1)
    processedItems: int = Field(0, ge=0)
    successCount: int = Field(0, ge=0)
    failedCount: int = Field(0, ge=0)
    skippedCount: int = Field(0, ge=0)

    currentItemLabel: Optional[str] = None
    failures: List[ItemFailure] = Field(default_factory=list)
    errorMessage: Optional[str] = None

    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)
    startedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None

    @classmethod
    def new(cls, owner: OwnerKey, total_items: int) -> "Job":
        return cls(
            shopId=owner.shopId,
            diagnosticId=owner.diagnosticId,
            issueType=owner.issueType,
            totalItems=total_items,
        )

    @computed_field
    @property
    def progressPercent(self) -> int:
        if self.totalItems <= 0:
            return 0
        return round(self.processedItems / self.totalItems * 100)

    @property
    def owner_key(self) -> OwnerKey:
        return OwnerKey(
            shopId=self.shopId,
            diagnosticId=self.diagnosticId,
            issueType=self.issueType,
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def is_stale(self, now: Optional[datetime] = None, threshold: Optional[int] = None) -> bool:
        threshold = config.STALE_JOB_SECONDS if threshold is None else threshold
        if threshold <= 0 or self.status not in ACTIVE_STATES:
            return False
        now = now or utcnow()
        return (now - self.updatedAt).total_seconds() > threshold

    def to_record(self) -> dict:
        """Flat JSON record as served to clients, staleness judged here."""
        record = self.model_dump(mode="json")
        record["isStale"] = self.is_stale()
        return record

    # -------------------------
    # Mutations
    # -------------------------
    def _require(self, *states: JobState):
        if self.status not in states:
            expected = ", ".join(s.value for s in states)
            raise InvalidJobTransition(
                f"Job {self.id} is {self.status.value}, expected {expected}"
            )

    def touch(self):
        self.updatedAt = utcnow()

    def start(self):
        self._require(JobState.queued)
        self.status = JobState.running
        self.startedAt = utcnow()
        self.touch()

    def begin_item(self, label: str):
        self._require(JobState.running)
        self.currentItemLabel = label
        self.touch()

    def record(self, item: AffectedItem, outcome: ItemOutcome):
        """Counts one processed item; all counters move together."""
        self._require(JobState.running)
        if self.processedItems >= self.totalItems:
            raise InvalidJobTransition(f"Job {self.id} has already processed all items")

        if outcome.kind is OutcomeKind.success:
            self.successCount += 1
        elif outcome.kind is OutcomeKind.failure:
            self.failedCount += 1
            self.failures.append(ItemFailure(
                itemId=item.id,
                itemLabel=item.label,
                reason=outcome.reason or "Unknown error",
            ))
        else:
            self.skippedCount += 1

        self.processedItems += 1
        self.touch()

    def complete(self):
        self._require(JobState.running)
        self.status = JobState.completed
        self.currentItemLabel = None
        self.completedAt = utcnow()
        self.touch()

    def fail(self, message: str):
        self._require(*ACTIVE_STATES)
        self.status = JobState.failed
        self.errorMessage = message
        self.currentItemLabel = None
        self.completedAt = utcnow()
        self.touch()
