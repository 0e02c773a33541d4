"""Flattening of raw API media records into photo and video descriptors."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Union

from .models import CarouselRecord, MediaDescriptor, MediaRecord, PhotoRecord, VideoRecord


def _first_url(versions: Any) -> Optional[str]:
    if not isinstance(versions, list) or not versions:
        return None
    first = versions[0]
    if isinstance(first, dict) and isinstance(first.get("url"), str):
        return first["url"]
    return None


def decode_record(raw: Any) -> Optional[MediaRecord]:
    """Turn one raw API item into a video, photo or carousel record.

    A video post also carries its poster in ``image_versions2``, so the video
    arm is tried first, then the photo arm, then the carousel arm. Items that
    fit none of them decode to ``None``.
    """
    if not isinstance(raw, dict):
        return None

    video_url = _first_url(raw.get("video_versions"))
    if video_url is not None:
        return VideoRecord(video_url)

    images = raw.get("image_versions2")
    photo_url = _first_url(images.get("candidates")) if isinstance(images, dict) else None
    if photo_url is not None:
        return PhotoRecord(photo_url)

    children = raw.get("carousel_media")
    if isinstance(children, list) and children:
        decoded = (decode_record(child) for child in children)
        return CarouselRecord(tuple(child for child in decoded if child is not None))

    return None


def _flatten_one(record: MediaRecord, out: List[MediaDescriptor]) -> None:
    if isinstance(record, VideoRecord):
        out.append(MediaDescriptor("video", record.url))
    elif isinstance(record, PhotoRecord):
        out.append(MediaDescriptor("photo", record.url))
    elif isinstance(record, CarouselRecord):
        for child in record.children:
            _flatten_one(child, out)


def flatten(records: Iterable[Union[MediaRecord, Any]]) -> List[MediaDescriptor]:
    """Flatten records depth first, keeping carousel order.

    Accepts decoded records or raw API items; unrecognized items are skipped.
    """
    media: List[MediaDescriptor] = []
    for record in records:
        if not isinstance(record, (VideoRecord, PhotoRecord, CarouselRecord)):
            record = decode_record(record)
            if record is None:
                continue
        _flatten_one(record, media)
    return media
