"""Data models used throughout the resolver pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import (
    Annotated,
    Any,
    Dict,
    Generic,
    List,
    Literal,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from pydantic import AliasPath, BaseModel, ConfigDict, Field, field_validator

POST_TRACE_POLICY = "polaris.postPage"
STORY_TRACE_POLICY = "polaris.StoriesPage"

T = TypeVar("T")
R = TypeVar("R")


def _coerce_id(value: Any) -> Any:
    # The site emits ids as both numbers and strings.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class PostDescriptor(BaseModel):
    """Page descriptor for a single post (photo, video or carousel)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    trace_policy: Literal["polaris.postPage"] = Field(
        default=POST_TRACE_POLICY, alias="tracePolicy"
    )
    url: str
    media_id: str = Field(validation_alias=AliasPath("rootView", "props", "media_id"))
    title: Optional[str] = Field(default=None, validation_alias=AliasPath("meta", "title"))

    @field_validator("media_id", mode="before")
    @classmethod
    def coerce_media_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class StoryDescriptor(BaseModel):
    """Page descriptor for a story viewer opened on one story item."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    trace_policy: Literal["polaris.StoriesPage"] = Field(
        default=STORY_TRACE_POLICY, alias="tracePolicy"
    )
    url: str
    user_id: str = Field(validation_alias=AliasPath("rootView", "props", "user", "id"))
    initial_media_id: str = Field(
        validation_alias=AliasPath("params", "initial_media_id")
    )

    @field_validator("user_id", "initial_media_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _coerce_id(value)


ContentDescriptor = Annotated[
    Union[PostDescriptor, StoryDescriptor],
    Field(discriminator="trace_policy"),
]


class MediaInfoResponse(BaseModel):
    """Body of ``/media/{id}/info/``."""

    items: List[Dict[str, Any]]


class ReelUser(BaseModel):
    full_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.full_name or self.username or None


class Reel(BaseModel):
    user: ReelUser
    items: List[Any] = Field(default_factory=list)


class ReelsMediaResponse(BaseModel):
    """Body of ``/feed/reels_media/?reel_ids={user_id}``."""

    reels: Dict[str, Reel]


@dataclass(frozen=True)
class VideoRecord:
    url: str


@dataclass(frozen=True)
class PhotoRecord:
    url: str


@dataclass(frozen=True)
class CarouselRecord:
    children: Tuple["MediaRecord", ...]


MediaRecord = Union[VideoRecord, PhotoRecord, CarouselRecord]


@dataclass(frozen=True)
class MediaDescriptor:
    """A single normalized media item."""

    kind: Literal["photo", "video"]
    url: str


@dataclass
class ResolvedContent:
    """Final result of resolving one link."""

    title: Optional[str]
    url: Optional[str]
    media: List[MediaDescriptor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchOutcome(Generic[T, R]):
    """Success value or failure for one input item of a batch."""

    index: int
    item: T
    result: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__
