"""Journal data model.

The stored document is a JSON array of entries using camelCase keys; these
dataclasses map it to typed objects and back. Text blocks and media items are
reached from the display order through weak references (``DisplayItem.item_id``)
which may dangle and must never be dereferenced blindly.
"""
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

DISPLAY_PREFIX = 'display-'
UNTITLED = 'Untitled Entry'


def now_iso():
    """Current UTC time as an ISO 8601 string with milliseconds and a Z suffix."""
    stamp = datetime.now(timezone.utc).isoformat(timespec='milliseconds')
    return stamp.replace('+00:00', 'Z')


def new_entry_id():
    return str(int(time.time() * 1000))


def new_block_id():
    return uuid.uuid4().hex


def parse_day(value):
    """Parse a YYYY-MM-DD string into a date."""
    return datetime.strptime(value, '%Y-%m-%d').date()


def _object(data, what):
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _text(data, key, default=None):
    """String field of a decoded object; missing keys fall back to default."""
    value = data.get(key, default)
    if value is None and default is not None:
        value = default
    if not isinstance(value, str):
        raise ValueError(f"{key!r} must be a string, got {type(value).__name__}")
    return value


def _items(data, key):
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ValueError(f"{key!r} must be an array, got {type(value).__name__}")
    return value


class MediaType(str, Enum):
    IMAGE = 'image'
    VIDEO = 'video'
    AUDIO = 'audio'

    @classmethod
    def from_mime(cls, mime_type):
        mime_type = (mime_type or '').lower()
        if mime_type.startswith('image/'):
            return cls.IMAGE
        if mime_type.startswith('video/'):
            return cls.VIDEO
        return cls.AUDIO


class DisplayType(str, Enum):
    TEXT = 'text'
    MEDIA = 'media'


@dataclass
class TextBlock:
    id: str
    text: str
    timestamp: str

    @classmethod
    def create(cls, text='', timestamp=None):
        return cls(id=new_block_id(), text=text, timestamp=timestamp or now_iso())

    @property
    def is_blank(self):
        return self.text.strip() == ''

    @property
    def time_label(self):
        """HH:MM part of the creation timestamp."""
        return self.timestamp[11:16]

    @classmethod
    def from_dict(cls, data):
        _object(data, 'Text block')
        return cls(id=_text(data, 'id'), text=_text(data, 'text', ''), timestamp=_text(data, 'timestamp', ''))

    def to_dict(self):
        return {'id': self.id, 'text': self.text, 'timestamp': self.timestamp}


@dataclass
class MediaItem:
    id: str
    type: MediaType
    url: str
    name: str

    @classmethod
    def from_dict(cls, data):
        _object(data, 'Media item')
        return cls(
            id=_text(data, 'id'),
            type=MediaType(data['type']),
            url=_text(data, 'url'),
            name=_text(data, 'name', ''),
        )

    def to_dict(self):
        return {'id': self.id, 'type': self.type.value, 'url': self.url, 'name': self.name}


@dataclass
class DisplayItem:
    id: str
    type: DisplayType
    item_id: str

    @classmethod
    def for_text(cls, block):
        return cls(id=DISPLAY_PREFIX + block.id, type=DisplayType.TEXT, item_id=block.id)

    @classmethod
    def for_media(cls, media):
        return cls(id=DISPLAY_PREFIX + media.id, type=DisplayType.MEDIA, item_id=media.id)

    @classmethod
    def from_dict(cls, data):
        _object(data, 'Display item')
        return cls(id=_text(data, 'id'), type=DisplayType(data['type']), item_id=_text(data, 'itemId'))

    def to_dict(self):
        return {'id': self.id, 'type': self.type.value, 'itemId': self.item_id}


@dataclass
class Entry:
    id: str
    date: str
    title: str = ''
    text_blocks: list = field(default_factory=list)
    media: list = field(default_factory=list)
    display_order: list = field(default_factory=list)
    created_at: str = ''
    updated_at: str = ''

    @classmethod
    def create(cls, day, title='', text_blocks=None, media=None, display_order=None):
        now = now_iso()
        return cls(
            id=new_entry_id(),
            date=day.isoformat() if isinstance(day, date) else day,
            title=title,
            text_blocks=list(text_blocks or []),
            media=list(media or []),
            display_order=list(display_order or []),
            created_at=now,
            updated_at=now,
        )

    @property
    def day(self):
        return parse_day(self.date)

    @property
    def display_title(self):
        return self.title or UNTITLED

    def find_text_block(self, block_id):
        for block in self.text_blocks:
            if block.id == block_id:
                return block
        return None

    def find_media(self, media_id):
        for media in self.media:
            if media.id == media_id:
                return media
        return None

    def resolve(self, display_item):
        """Return the block or media a display item points at, or None if it dangles."""
        if display_item.type == DisplayType.TEXT:
            return self.find_text_block(display_item.item_id)
        return self.find_media(display_item.item_id)

    def rendered_items(self):
        """Yield (display_item, target) pairs in display order, skipping dangling references."""
        for display_item in self.display_order:
            target = self.resolve(display_item)
            if target is not None:
                yield display_item, target

    def media_summary(self, limit=3):
        """Short list of media type names, e.g. ['image', 'audio', '+2']."""
        summary = [m.type.value for m in self.media[:limit]]
        if len(self.media) > limit:
            summary.append(f"+{len(self.media) - limit}")
        return summary

    @classmethod
    def from_dict(cls, data):
        _object(data, 'Entry')
        entry_date = _text(data, 'date')
        parse_day(entry_date)
        return cls(
            id=_text(data, 'id'),
            date=entry_date,
            title=_text(data, 'title', ''),
            text_blocks=[TextBlock.from_dict(b) for b in _items(data, 'textBlocks')],
            media=[MediaItem.from_dict(m) for m in _items(data, 'media')],
            display_order=[DisplayItem.from_dict(d) for d in _items(data, 'displayOrder')],
            created_at=_text(data, 'createdAt', ''),
            updated_at=_text(data, 'updatedAt', ''),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date,
            'title': self.title,
            'textBlocks': [b.to_dict() for b in self.text_blocks],
            'media': [m.to_dict() for m in self.media],
            'displayOrder': [d.to_dict() for d in self.display_order],
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
        }


def entries_from_json(data):
    """Parse a decoded entries document (a list of dicts).

    Raises ValueError for anything that is not a valid entry list.
    """
    if not isinstance(data, list):
        raise ValueError(f"Entries document must be an array, got {type(data).__name__}")
    try:
        entries = [Entry.from_dict(item) for item in data]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed entry: {e!r}") from e
    validate_entries(entries)
    return entries


def entries_to_json(entries):
    return [entry.to_dict() for entry in entries]


def validate_entries(entries):
    """At most one entry may exist per date."""
    seen = set()
    for entry in entries:
        if entry.date in seen:
            raise ValueError(f"Duplicate entry for {entry.date}")
        seen.add(entry.date)
