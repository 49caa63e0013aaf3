"""Client-side journal state.

A :class:`Journal` keeps the full entry list in memory and tracks one
selected calendar date, which is either without an entry, being viewed or
being edited. Every change to the entry list is handed to ``on_change`` with
the complete list, which is how the client persists (whole-document saves,
last writer wins).
"""
import copy
from datetime import date
from enum import Enum

from .exceptions import FutureDateError, NotEditingError, ReorderError, UnknownItemError
from .models import DisplayItem, DisplayType, Entry, MediaItem, MediaType, TextBlock, now_iso


class JournalState(str, Enum):
    NO_ENTRY = 'no-entry'
    VIEWING = 'viewing'
    EDITING = 'editing'


def move_item(items, from_index, to_index):
    """Return a copy of items with one element moved (remove, then insert)."""
    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


class Journal:
    def __init__(self, entries=None, today=date.today, on_change=None, clock=now_iso):
        self.entries = list(entries or [])
        self.today = today
        self.on_change = on_change
        self.clock = clock
        self.selected_date = today()
        self.editing = False
        self.title = ''
        self.edit_blocks = []
        self._load_draft()

    # ----- selection -----

    @property
    def current_entry(self):
        return self.entry_for(self.selected_date)

    @property
    def state(self):
        if self.editing:
            return JournalState.EDITING
        if self.current_entry is None:
            return JournalState.NO_ENTRY
        return JournalState.VIEWING

    @property
    def can_edit(self):
        return self.selected_date <= self.today()

    def entry_for(self, day):
        key = day.isoformat()
        for entry in self.entries:
            if entry.date == key:
                return entry
        return None

    def has_entry_for(self, day):
        return self.entry_for(day) is not None

    def select_date(self, day):
        """Switch to another date, dropping any unsaved draft"""
        self.selected_date = day
        self.editing = False
        self._load_draft()

    def replace_entries(self, entries):
        """Swap in a freshly loaded entry list without persisting it"""
        self.entries = list(entries)
        self.editing = False
        self._load_draft()

    def _load_draft(self):
        entry = self.current_entry
        self.title = entry.title if entry else ''
        self.edit_blocks = copy.deepcopy(entry.text_blocks) if entry else []

    # ----- editing -----

    def _require_editable(self):
        if not self.can_edit:
            raise FutureDateError(self.selected_date)

    def _require_editing(self):
        if not self.editing:
            raise NotEditingError("Not editing an entry")

    def start_editing(self):
        """Create a new entry or edit the existing one for the selected date"""
        self._require_editable()
        self._load_draft()
        self.editing = True

    def set_title(self, title):
        self._require_editing()
        self.title = title

    def add_text_block(self, text=''):
        self._require_editing()
        block = TextBlock.create(text, timestamp=self.clock())
        self.edit_blocks.append(block)
        return block

    def _draft_block(self, block_id):
        for block in self.edit_blocks:
            if block.id == block_id:
                return block
        raise UnknownItemError(f"No text block {block_id}")

    def update_text_block(self, block_id, text):
        self._require_editing()
        self._draft_block(block_id).text = text

    def remove_text_block(self, block_id):
        self._require_editing()
        self._draft_block(block_id)
        self.edit_blocks = [b for b in self.edit_blocks if b.id != block_id]

    def save(self):
        """Commit the draft and return to viewing.

        Blank blocks are dropped. Text display items are rebuilt from the
        remaining blocks and placed before the media display items the entry
        already had, which keep their relative order.
        """
        self._require_editing()
        self._require_editable()
        blocks = [b for b in self.edit_blocks if not b.is_blank]
        text_items = [DisplayItem.for_text(b) for b in blocks]
        entry = self.current_entry
        if entry is not None:
            media_items = [d for d in entry.display_order if d.type == DisplayType.MEDIA]
            entry.title = self.title
            entry.text_blocks = blocks
            entry.display_order = text_items + media_items
            entry.updated_at = self.clock()
        else:
            entry = Entry.create(self.selected_date, title=self.title, text_blocks=blocks,
                                 display_order=text_items)
            entry.created_at = entry.updated_at = self.clock()
            self.entries.append(entry)
        self.editing = False
        self.edit_blocks = copy.deepcopy(entry.text_blocks)
        self._changed()
        return entry

    # ----- media -----

    def attach_media(self, uploaded, mime_type):
        """Add an uploaded file to the selected date's entry and switch to editing.

        ``uploaded`` is the server's answer to a media upload: a mapping with
        ``id``, ``name`` and ``url``.
        """
        return self.attach_media_batch([(uploaded, mime_type)])

    def attach_media_batch(self, uploads):
        self._require_editable()
        new_media = [
            MediaItem(id=u['id'], type=MediaType.from_mime(mime), url=u['url'], name=u['name'])
            for u, mime in uploads
        ]
        new_items = [DisplayItem.for_media(m) for m in new_media]
        entry = self.current_entry
        if entry is not None:
            entry.title = self.title
            entry.media = entry.media + new_media
            entry.display_order = entry.display_order + new_items
            entry.updated_at = self.clock()
        else:
            entry = Entry.create(self.selected_date, title=self.title, media=new_media,
                                 display_order=new_items)
            entry.created_at = entry.updated_at = self.clock()
            self.entries.append(entry)
        self.editing = True
        self._changed()
        return entry

    def delete_media(self, media_id):
        """Remove a media item and every display item that points at it.

        The stored blob is left alone.
        """
        entry = self.current_entry
        if entry is None or entry.find_media(media_id) is None:
            raise UnknownItemError(f"No media {media_id}")
        entry.media = [m for m in entry.media if m.id != media_id]
        entry.display_order = [d for d in entry.display_order if d.item_id != media_id]
        entry.updated_at = self.clock()
        self._changed()
        return entry

    # ----- ordering -----

    def move_display_item(self, from_index, to_index):
        # Reordering is a view-mode action only
        if self.editing:
            raise ReorderError("Items cannot be reordered while editing")
        entry = self.current_entry
        if entry is None:
            raise ReorderError("No entry to reorder")
        size = len(entry.display_order)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise ReorderError(f"Move {from_index} -> {to_index} out of range for {size} items")
        entry.display_order = move_item(entry.display_order, from_index, to_index)
        entry.updated_at = self.clock()
        self._changed()
        return entry

    def move_display_item_by_id(self, dragged_id, target_id):
        """Drop one display item onto another; unknown ids or a self drop do nothing"""
        entry = self.current_entry
        if entry is None:
            return None
        ids = [d.id for d in entry.display_order]
        if dragged_id not in ids or target_id not in ids or dragged_id == target_id:
            return None
        return self.move_display_item(ids.index(dragged_id), ids.index(target_id))

    # ----- lookup -----

    def search(self, query):
        """Entries whose title contains query, ignoring case"""
        if not query.strip():
            return []
        needle = query.lower()
        return [e for e in self.entries if needle in e.title.lower()]

    def recent_entries(self, limit=5):
        return sorted(self.entries, key=lambda e: e.date, reverse=True)[:limit]

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self.entries)
