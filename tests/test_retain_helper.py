"""Tests for the Retain helper: decode, overlay and encode."""

import json
from datetime import datetime
from typing import Any, Annotated, List, Optional

import pytest
from pydantic import BaseModel, ConfigDict, Field

from retain import DecodeError, EncodeError, Ignore, Retain, UnknownFields, json_equal, retained
from retain.errors import ErrorCode


class Page(BaseModel):
    title: str
    slug: str
    unknown: UnknownFields = retained()


class Settings(BaseModel):
    name: str = "default"
    level: int = 1
    store: UnknownFields = retained()


class Article(BaseModel):
    headline: str = Field(alias="title")
    tags: List[str] = Field(default_factory=list)
    published: Optional[datetime] = None
    secret: Annotated[str, Ignore] = "local"
    store: UnknownFields = retained()


class Counter(BaseModel):
    count: int = 0
    store: UnknownFields = retained()


class StrictCounter(BaseModel):
    model_config = ConfigDict(strict=True)
    count: int = 0
    store: UnknownFields = retained()


class Bounded(BaseModel):
    n: int = Field(ge=0)
    store: UnknownFields = retained()


class Holder(BaseModel):
    blob: Any = None
    store: UnknownFields = retained()


def decode(model: type, payload: bytes) -> BaseModel:
    record = model.model_construct()
    Retain(record).decode(payload)
    return record


class TestDecode:
    """Decoding fills typed fields and the store."""

    def test_typed_fields_and_store(self, contact_payload):
        """Typed fields are set and the store holds every key."""
        page = decode(Page, contact_payload)
        assert page.title == "Contact Us"
        assert page.slug == "contact"
        assert page.unknown == {"title": "Contact Us", "slug": "contact", "icon": "email"}
        assert list(page.unknown) == ["title", "slug", "icon"]

    def test_store_is_unknown_fields(self, contact_payload):
        """The store is replaced with a fresh UnknownFields."""
        page = decode(Page, contact_payload)
        assert isinstance(page.unknown, UnknownFields)

    def test_store_replaced_wholesale(self, contact_payload):
        """A second decode drops keys only the first payload had."""
        page = decode(Page, contact_payload)
        Retain(page).decode(b'{"title": "T", "slug": "s", "color": "red"}')
        assert page.unknown == {"title": "T", "slug": "s", "color": "red"}

    def test_absent_fields_keep_current_values(self):
        """Decoding in place only touches fields the payload carries."""
        settings = Settings(name="mine", level=3)
        Retain(settings).decode(b'{"level": 5, "x": 1}')
        assert settings.name == "mine"
        assert settings.level == 5
        assert settings.store == {"level": 5, "x": 1}

    def test_alias_and_conversion(self):
        """Aliased fields decode from their wire key; types are converted."""
        article = decode(
            Article,
            b'{"title": "Hi", "tags": ["a"], "published": "2024-05-01T10:00:00", "views": 9}',
        )
        assert article.headline == "Hi"
        assert article.tags == ["a"]
        assert article.published == datetime(2024, 5, 1, 10, 0, 0)
        assert article.store["published"] == "2024-05-01T10:00:00"

    def test_ignored_field_not_read(self):
        """An ignored field keeps its value; its key stays in the store."""
        article = decode(Article, b'{"title": "Hi", "secret": "from-wire"}')
        assert article.secret == "local"
        assert article.store["secret"] == "from-wire"

    def test_decode_dict(self):
        """Already-parsed objects decode the same way and are copied."""
        obj = {"title": "T", "slug": "s", "nested": {"a": [1]}}
        page = Page.model_construct()
        Retain(page).decode_dict(obj)
        assert page.title == "T"
        obj["nested"]["a"].append(2)
        assert page.unknown["nested"] == {"a": [1]}

    def test_decode_returns_record(self, contact_payload):
        """decode() returns the bound record."""
        page = Page.model_construct()
        assert Retain(page).decode(contact_payload) is page


class TestDecodeErrors:
    """Decode failures carry the offending key and types."""

    def test_malformed(self):
        """Malformed JSON fails."""
        with pytest.raises(DecodeError, match="Malformed JSON") as exc_info:
            decode(Page, b'{"title": ')
        assert exc_info.value.code == ErrorCode.DECODE_FAILED

    def test_top_level_array(self):
        """A top-level array is not a record."""
        with pytest.raises(DecodeError, match="must be an object"):
            decode(Page, b'[{"title": "a", "slug": "b"}]')

    def test_type_mismatch(self):
        """A typed field with the wrong JSON type fails with context."""
        with pytest.raises(DecodeError) as exc_info:
            decode(Page, b'{"title": 5, "slug": "s"}')
        err = exc_info.value
        assert err.key == "title"
        assert err.expected == "string_type"
        assert err.actual == "number"
        assert err.errors
        assert isinstance(err.__cause__, Exception)

    def test_missing_required(self):
        """A missing required field fails."""
        with pytest.raises(DecodeError) as exc_info:
            decode(Page, b'{"slug": "s"}')
        assert exc_info.value.key == "title"
        assert exc_info.value.expected == "missing"

    def test_nested_location(self):
        """Errors inside containers report a dotted path."""
        with pytest.raises(DecodeError) as exc_info:
            decode(Article, b'{"title": "Hi", "tags": ["a", 2]}')
        assert exc_info.value.key == "tags.1"

    def test_field_constraints_apply(self):
        """Field constraints are enforced on decode."""
        with pytest.raises(DecodeError) as exc_info:
            decode(Bounded, b'{"n": -1}')
        assert exc_info.value.expected == "greater_than_equal"

    def test_converts_like_pydantic_by_default(self):
        """Without a strict setting, numbers in strings are converted."""
        counter = decode(Counter, b'{"count": "5"}')
        assert counter.count == 5
        assert counter.store["count"] == "5"

    def test_strict_when_configured(self):
        """A record configured strict=True rejects numbers in strings."""
        with pytest.raises(DecodeError) as exc_info:
            decode(StrictCounter, b'{"count": "5"}')
        assert exc_info.value.key == "count"
        assert exc_info.value.actual == "string"


class TestEncode:
    """Encoding overlays typed fields on the store."""

    def test_contact_scenario(self, contact_payload):
        """Mutating a typed field changes only that key."""
        page = decode(Page, contact_payload)
        page.slug = "contact-us"
        out = Retain(page).encode()
        assert json.loads(out) == {"title": "Contact Us", "slug": "contact-us", "icon": "email"}
        assert out == b'{"title":"Contact Us","slug":"contact-us","icon":"email"}'

    def test_round_trip(self, nested_payload):
        """Unmutated records re-encode to the same JSON object."""
        page = decode(Page, nested_payload)
        assert json_equal(Retain(page).encode(), nested_payload)

    def test_unknown_nested_values_untouched(self, nested_payload):
        """Nested unknown values come back exactly as decoded."""
        page = decode(Page, nested_payload)
        page.title = "Changed"
        out = json.loads(Retain(page).encode())
        original = json.loads(nested_payload)
        assert out["title"] == "Changed"
        for key in ("menu", "weights", "meta"):
            assert out[key] == original[key]

    def test_idempotent(self, nested_payload):
        """decode -> encode -> decode yields the same typed state."""
        first = decode(Page, nested_payload)
        second = decode(Page, Retain(first).encode())
        assert first.model_dump() == second.model_dump()
        assert first.unknown == second.unknown

    def test_fields_missing_from_payload_are_added(self):
        """Mapped fields absent from the payload are written on encode."""
        settings = Settings(name="mine", level=3)
        Retain(settings).decode(b'{"level": 5, "x": 1}')
        assert json.loads(Retain(settings).encode()) == {"level": 5, "x": 1, "name": "mine"}

    def test_alias_and_datetime(self):
        """Aliased fields encode under their wire key, values as JSON."""
        article = decode(Article, b'{"title": "Hi", "published": "2024-05-01T10:00:00"}')
        article.published = datetime(2025, 1, 2, 3, 4, 5)
        out = json.loads(Retain(article).encode())
        assert out == {"title": "Hi", "published": "2025-01-02T03:04:05", "tags": []}

    def test_ignored_field_not_written(self):
        """Ignored fields never overwrite their stored key."""
        article = decode(Article, b'{"title": "Hi", "secret": "from-wire"}')
        article.secret = "changed"
        assert json.loads(Retain(article).encode())["secret"] == "from-wire"

    def test_encode_updates_store(self, contact_payload):
        """The overlay is written into the store itself."""
        page = decode(Page, contact_payload)
        page.title = "New"
        Retain(page).to_dict()
        assert page.unknown["title"] == "New"

    def test_fresh_record_without_decode(self):
        """A record built in code encodes its typed fields."""
        assert json.loads(Retain(Page(title="a", slug="b")).encode()) == {"title": "a", "slug": "b"}

    def test_canonical_output(self, contact_payload):
        """Canonical encoding sorts keys."""
        page = decode(Page, contact_payload)
        assert Retain(page).encode(canonical=True) == (
            b'{"icon":"email","slug":"contact","title":"Contact Us"}'
        )

    def test_unknown_view(self, contact_payload):
        """unknown() lists only keys with no typed field."""
        page = decode(Page, contact_payload)
        assert Retain(page).unknown() == {"icon": "email"}


class TestEncodeErrors:
    """Encode failures name the offending key."""

    def test_unserializable_field(self):
        """A typed field value JSON cannot hold fails."""
        record = Holder(blob=object())
        with pytest.raises(EncodeError) as exc_info:
            Retain(record).encode()
        assert exc_info.value.key == "blob"
        assert exc_info.value.code == ErrorCode.ENCODE_FAILED

    def test_wrong_type_assigned(self, contact_payload):
        """A field assigned a value of the wrong type fails."""
        page = decode(Page, contact_payload)
        page.slug = object()
        with pytest.raises(EncodeError) as exc_info:
            Retain(page).encode()
        assert exc_info.value.key == "slug"

    def test_unserializable_store_value(self, contact_payload):
        """A non-JSON value placed in the store fails."""
        page = decode(Page, contact_payload)
        page.unknown["when"] = datetime(2024, 1, 1)
        with pytest.raises(EncodeError) as exc_info:
            Retain(page).encode()
        assert exc_info.value.key == "when"
        assert exc_info.value.actual == "datetime"
