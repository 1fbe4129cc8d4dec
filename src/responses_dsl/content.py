"""Content parts: the atomic units of message content.

Parts validate themselves at construction; downstream code trusts built
values. Encoding maps each variant to a discriminated wire object and
``decode_part`` is its exact inverse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypeAlias, get_args
from urllib.parse import urlparse

from responses_dsl._json import optional_str, require_mapping, require_str
from responses_dsl.errors import DecodingError, InvalidValueError

ImageDetail = Literal["auto", "low", "high"]
_IMAGE_DETAILS: frozenset[str] = frozenset(get_args(ImageDetail))


def _require_absolute_uri(value: Any, *, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidValueError(field, "must be a non-empty URI string")
    parsed = urlparse(value)
    if not parsed.scheme:
        raise InvalidValueError(field, f"must be an absolute URI, got {value!r}")
    if parsed.scheme in {"http", "https"} and not parsed.netloc:
        raise InvalidValueError(field, f"missing host in {value!r}")
    if not parsed.netloc and not parsed.path:
        raise InvalidValueError(field, f"must be an absolute URI, got {value!r}")


@dataclass(frozen=True, slots=True)
class TextPart:
    """Plain text content."""

    text: str

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text:
            raise InvalidValueError("text", "must be a non-empty string")


@dataclass(frozen=True, slots=True)
class ImagePart:
    """Reference to an image by absolute URI (``https://`` or ``data:``)."""

    url: str
    detail: ImageDetail = "auto"

    def __post_init__(self) -> None:
        _require_absolute_uri(self.url, field="image.url")
        if self.detail not in _IMAGE_DETAILS:
            raise InvalidValueError(
                "image.detail",
                f"must be one of {sorted(_IMAGE_DETAILS)}, got {self.detail!r}",
            )


@dataclass(frozen=True, slots=True)
class FilePart:
    """Reference to a file: an uploaded file id, a URL, or inline base64 data."""

    file_id: str | None = None
    file_url: str | None = None
    file_data: str | None = None
    filename: str | None = None

    def __post_init__(self) -> None:
        if self.file_id is None and self.file_url is None and self.file_data is None:
            raise InvalidValueError(
                "file", "one of file_id, file_url or file_data is required"
            )
        if self.file_id is not None and (
            not isinstance(self.file_id, str) or not self.file_id
        ):
            raise InvalidValueError("file.file_id", "must be a non-empty string")
        if self.file_url is not None:
            _require_absolute_uri(self.file_url, field="file.file_url")
        if self.file_data is not None and (
            not isinstance(self.file_data, str) or not self.file_data
        ):
            raise InvalidValueError("file.file_data", "must be a non-empty string")
        if self.filename is not None and not isinstance(self.filename, str):
            raise InvalidValueError("file.filename", "must be a string")


ContentPart: TypeAlias = TextPart | ImagePart | FilePart


def as_part(value: str | ContentPart) -> ContentPart:
    """Coerce a bare string into a ``TextPart``; pass parts through."""
    if isinstance(value, str):
        return TextPart(value)
    if isinstance(value, (TextPart, ImagePart, FilePart)):
        return value
    raise InvalidValueError(
        "content", f"expected str or content part, got {type(value).__name__}"
    )


def encode_part(part: ContentPart) -> dict[str, Any]:
    """Map a content part to its wire object."""
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        return {"type": "image_url", "image_url": {"url": part.url, "detail": part.detail}}
    if isinstance(part, FilePart):
        file_obj: dict[str, Any] = {}
        for key in ("file_id", "file_url", "file_data", "filename"):
            value = getattr(part, key)
            if value is not None:
                file_obj[key] = value
        return {"type": "file", "file": file_obj}
    raise InvalidValueError("content", f"unsupported part type {type(part).__name__}")


def decode_part(obj: Any) -> ContentPart:
    """Inverse of ``encode_part``.

    Raises:
        DecodingError: On an unknown ``type`` discriminator or a payload that
            does not satisfy the part's invariants.
    """
    data = require_mapping(obj, what="content part")
    part_type = require_str(data, "type", what="content part")
    try:
        if part_type == "text":
            return TextPart(require_str(data, "text", what="content part"))
        if part_type == "image_url":
            image = data.get("image_url")
            if isinstance(image, str):
                return ImagePart(image)
            image = require_mapping(image, what="content part.image_url")
            detail = optional_str(image, "detail", what="content part.image_url")
            return ImagePart(
                require_str(image, "url", what="content part.image_url"),
                detail=detail or "auto",  # type: ignore[arg-type]
            )
        if part_type == "file":
            file_obj = require_mapping(data.get("file"), what="content part.file")
            return FilePart(
                file_id=optional_str(file_obj, "file_id", what="content part.file"),
                file_url=optional_str(file_obj, "file_url", what="content part.file"),
                file_data=optional_str(file_obj, "file_data", what="content part.file"),
                filename=optional_str(file_obj, "filename", what="content part.file"),
            )
    except InvalidValueError as e:
        raise DecodingError(f"invalid {part_type} content part: {e}") from e
    raise DecodingError(f"unknown content part type: {part_type!r}")
