#!/usr/bin/env python3
import calendar
import logging
import shlex
import sys
from datetime import date, timedelta
from pathlib import Path

from prompt_toolkit import Application
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import ConditionalContainer, FormattedTextControl, HSplit, Layout, VSplit, Window
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import Box, Frame, TextArea

from .client import JournalClient
from .config import Config
from .exceptions import ApiError, JournalError
from .journal import Journal, JournalState
from .logger import setup_logger
from .models import DisplayType, parse_day

logger = logging.getLogger('personal_log.tui')

VIEW_HELP = "n/e:Edit | u:Upload | j/k:Select | J/K:Move | x:Delete media | /:Search | t:Today | r:Reload | q:Quit"
EDIT_HELP = "Ctrl-S:Save | Ctrl-A:Add block | Ctrl-D:Remove block | PgUp/PgDn:Block | Tab:Title | Ctrl-U:Upload | Esc:Cancel"


class JournalUI:
    def __init__(self, client, today=date.today):
        self.client = client
        self.journal = Journal(today=today, on_change=self.persist)
        self.loaded = False
        self.selected_item = 0
        self.block_index = 0
        self.prompt_mode = None
        self.search_results = []
        self.status_message = "Welcome to Personal Log"

        # Create key bindings
        self.kb = KeyBindings()

        # Create UI components
        self.calendar_control = FormattedTextControl(self.get_calendar_text)
        self.sidebar_control = FormattedTextControl(self.get_sidebar_text)
        self.view_control = FormattedTextControl(self.get_view_text, focusable=True)
        self.blocks_control = FormattedTextControl(self.get_blocks_text)

        self.title_area = TextArea(height=1, multiline=False, prompt="Title: ")
        self.title_area.buffer.on_text_changed += self.on_title_changed
        self.block_area = TextArea(scrollbar=True, wrap_lines=True)
        self.block_area.buffer.on_text_changed += self.on_block_changed
        self.prompt_area = TextArea(height=1, multiline=False, accept_handler=self.accept_prompt,
                                    get_line_prefix=lambda line, wrap: self.prompt_label())
        self.prompt_area.buffer.on_text_changed += self.on_prompt_changed

        self.status_bar = Window(
            height=1,
            content=FormattedTextControl(lambda: [("class:status", self.status_message)]),
        )

        # Register keybindings
        self.setup_keybindings()

        editing = Condition(lambda: self.journal.editing)
        prompting = Condition(lambda: self.prompt_mode is not None)

        editor = HSplit([
            self.title_area,
            Window(height=1, char="-"),
            Window(content=self.blocks_control, height=3),
            self.block_area,
        ])

        # Create layout
        self.body = VSplit([
            # Left panel - calendar and entry list
            HSplit([
                Frame(Box(Window(content=self.calendar_control, height=8), padding=1), title="Calendar"),
                Frame(Box(Window(content=self.sidebar_control), padding=1),
                      title=lambda: "Search Results" if self.prompt_mode == 'search' else "Recent Entries"),
            ], width=34),
            # Right panel - Content/Editor
            Frame(
                Box(HSplit([
                    ConditionalContainer(editor, filter=editing),
                    ConditionalContainer(Window(content=self.view_control, wrap_lines=True), filter=~editing),
                ]), padding=1),
                title=self.get_content_title,
            ),
        ])

        self.container = HSplit([
            self.body,
            ConditionalContainer(self.prompt_area, filter=prompting),
            self.status_bar,
        ])

        # Create style
        self.style = Style.from_dict({
            'status': 'reverse',
            'frame.border': '#888888',
            'selected': 'reverse',
            'has-entry': 'bold underline',
            'future': '#666666',
            'today': 'bold',
            'heading': 'bold',
            'muted': '#888888',
        })

        # Create application
        self.app = Application(
            layout=Layout(self.container, focused_element=self.view_control),
            key_bindings=self.kb,
            full_screen=True,
            mouse_support=True,
            style=self.style,
        )

        self.reload()

    # ----- persistence -----

    def persist(self, entries):
        """Push the full entry list to the server"""
        if not self.loaded:
            raise ApiError("Entries were never loaded from the server; press r to retry before editing")
        self.client.save_entries(entries)

    def reload(self):
        """Fetch entries from the server, replacing the local copy"""
        try:
            self.journal.replace_entries(self.client.load_entries())
        except ApiError as e:
            logger.error(f"Loading entries failed: {e}")
            self.status_message = f"Error: {e}"
            return
        self.loaded = True
        self.selected_item = 0
        self.status_message = f"Loaded {len(self.journal.entries)} entries | {VIEW_HELP}"

    def run_action(self, action, *args):
        """Run a journal action and report failures in the status bar"""
        try:
            return action(*args)
        except (ApiError, JournalError) as e:
            logger.error(f"{action.__name__} failed: {e}")
            self.status_message = f"Error: {e}"
            return None

    # ----- key bindings -----

    def setup_keybindings(self):
        viewing = Condition(lambda: not self.journal.editing and self.prompt_mode is None)
        editing = Condition(lambda: self.journal.editing and self.prompt_mode is None)
        prompting = Condition(lambda: self.prompt_mode is not None)

        @self.kb.add('q', filter=viewing)
        def _(event):
            event.app.exit()

        @self.kb.add('left', filter=viewing)
        def _(event):
            self.move_date(-1)

        @self.kb.add('right', filter=viewing)
        def _(event):
            self.move_date(1)

        @self.kb.add('up', filter=viewing)
        def _(event):
            self.move_date(-7)

        @self.kb.add('down', filter=viewing)
        def _(event):
            self.move_date(7)

        @self.kb.add('t', filter=viewing)
        def _(event):
            self.select_date(self.journal.today())

        @self.kb.add('n', filter=viewing)
        @self.kb.add('e', filter=viewing)
        def _(event):
            self.start_editing()

        @self.kb.add('u', filter=viewing)
        @self.kb.add('c-u', filter=editing)
        def _(event):
            if not self.journal.can_edit:
                self.status_message = "Error: Future entries are not allowed"
                return
            self.open_prompt('upload')

        @self.kb.add('j', filter=viewing)
        def _(event):
            self.step_selection(1)

        @self.kb.add('k', filter=viewing)
        def _(event):
            self.step_selection(-1)

        @self.kb.add('J', filter=viewing)
        def _(event):
            self.move_selected_item(1)

        @self.kb.add('K', filter=viewing)
        def _(event):
            self.move_selected_item(-1)

        @self.kb.add('x', filter=viewing)
        def _(event):
            self.delete_selected_media()

        @self.kb.add('/', filter=viewing)
        def _(event):
            self.open_prompt('search')

        @self.kb.add('r', filter=viewing)
        def _(event):
            self.reload()

        @self.kb.add('c-s', filter=editing)
        def _(event):
            self.save_current_entry()

        @self.kb.add('c-a', filter=editing)
        def _(event):
            self.add_block()

        @self.kb.add('c-d', filter=editing)
        def _(event):
            self.remove_block()

        @self.kb.add('pageup', filter=editing)
        def _(event):
            self.focus_block(self.block_index - 1)

        @self.kb.add('pagedown', filter=editing)
        def _(event):
            self.focus_block(self.block_index + 1)

        @self.kb.add('tab', filter=editing)
        def _(event):
            if event.app.layout.has_focus(self.title_area):
                event.app.layout.focus(self.block_area)
            else:
                event.app.layout.focus(self.title_area)

        @self.kb.add('escape', filter=editing)
        def _(event):
            self.cancel_edit()

        @self.kb.add('escape', filter=prompting)
        def _(event):
            self.close_prompt()

    # ----- rendering -----

    def get_content_title(self):
        return self.journal.selected_date.strftime("%A, %B %d, %Y")

    def get_calendar_text(self):
        """Month grid around the selected date"""
        selected = self.journal.selected_date
        today = self.journal.today()
        result = [("class:heading", f" {selected.strftime('%B %Y'):^20}\n"),
                  ("class:muted", " Mo Tu We Th Fr Sa Su\n")]
        for week in calendar.Calendar(firstweekday=0).monthdatescalendar(selected.year, selected.month):
            result.append(("", " "))
            for day in week:
                if day.month != selected.month:
                    result.append(("", "   "))
                    continue
                style = ""
                if day > today:
                    style = "class:future"
                elif self.journal.has_entry_for(day):
                    style = "class:has-entry"
                if day == today:
                    style += " class:today"
                if day == selected:
                    style = "class:selected"
                result.append((style, f"{day.day:2d}"))
                result.append(("", " "))
            result.append(("", "\n"))
        return result

    def get_sidebar_text(self):
        if self.prompt_mode == 'search':
            if not self.search_results:
                return [("class:muted", " No entries found \n")]
            entries = self.search_results
        else:
            entries = self.journal.recent_entries()
            if not entries:
                return [("class:muted", " No entries yet. \n")]

        result = []
        for entry in entries:
            style = "class:selected" if entry.date == self.journal.selected_date.isoformat() else ""
            result.append((style, f" {entry.date} {entry.display_title[:18]}\n"))
            summary = entry.media_summary()
            if summary:
                result.append(("class:muted", f"   {' '.join(summary)}\n"))
        return result

    def get_view_text(self):
        """Read view of the selected date"""
        entry = self.journal.current_entry
        state = self.journal.state
        if self.journal.selected_date > self.journal.today():
            header = [("class:muted", "Future entries are not allowed\n\n")]
        else:
            header = []

        if state == JournalState.NO_ENTRY:
            hint = "Press n to create an entry" if self.journal.can_edit else "This date is in the future"
            return header + [("", "No entry for this date\n"), ("class:muted", hint + "\n")]

        result = header + [("class:heading", entry.display_title + "\n\n")]
        if not entry.display_order:
            return result + [("class:muted", "This entry is empty\n")]

        for index, display_item in enumerate(entry.display_order):
            target = entry.resolve(display_item)
            if target is None:
                continue
            marker = "> " if index == self.selected_item else "  "
            style = "class:selected" if index == self.selected_item else ""
            if display_item.type == DisplayType.TEXT:
                result.append((style, f"{marker}{target.time_label:>5}  {target.text}\n\n"))
            else:
                result.append((style, f"{marker}[{target.type.value}] {target.name}  ({target.url})\n\n"))
        return result

    def get_blocks_text(self):
        blocks = self.journal.edit_blocks
        if not blocks:
            return [("class:muted", " No text blocks. Ctrl-A adds one.\n")]
        result = []
        for index, block in enumerate(blocks):
            style = "class:selected" if index == self.block_index else ""
            preview = block.text.strip().replace("\n", " ")[:20] or "(empty)"
            result.append((style, f" #{index + 1} {block.time_label} {preview} "))
        return result

    def prompt_label(self):
        return "Search: " if self.prompt_mode == 'search' else "Upload file(s): "

    # ----- navigation -----

    def move_date(self, days):
        self.select_date(self.journal.selected_date + timedelta(days=days))

    def select_date(self, day):
        self.journal.select_date(day)
        self.selected_item = self.first_visible_index()
        self.show_focus()
        self.status_message = VIEW_HELP

    def visible_indexes(self):
        entry = self.journal.current_entry
        if entry is None:
            return []
        return [i for i, d in enumerate(entry.display_order) if entry.resolve(d) is not None]

    def first_visible_index(self):
        visible = self.visible_indexes()
        return visible[0] if visible else 0

    def step_selection(self, step):
        visible = self.visible_indexes()
        if not visible:
            return
        position = visible.index(self.selected_item) if self.selected_item in visible else 0
        position = max(0, min(len(visible) - 1, position + step))
        self.selected_item = visible[position]

    def move_selected_item(self, step):
        """Move the selected display item past its visible neighbour"""
        visible = self.visible_indexes()
        if self.selected_item not in visible:
            return
        position = visible.index(self.selected_item) + step
        if not 0 <= position < len(visible):
            return
        target = visible[position]
        if self.run_action(self.journal.move_display_item, self.selected_item, target) is not None:
            self.selected_item = target
            self.status_message = "Order saved"

    def delete_selected_media(self):
        entry = self.journal.current_entry
        if entry is None or self.selected_item >= len(entry.display_order):
            return
        display_item = entry.display_order[self.selected_item]
        if display_item.type != DisplayType.MEDIA:
            self.status_message = "Select a media item to delete"
            return
        if self.run_action(self.journal.delete_media, display_item.item_id) is not None:
            self.selected_item = self.first_visible_index()
            self.status_message = "Media removed"

    def show_focus(self):
        if self.prompt_mode is not None:
            self.app.layout.focus(self.prompt_area)
        elif self.journal.editing:
            self.app.layout.focus(self.block_area)
        else:
            self.app.layout.focus(self.view_control)

    # ----- editing -----

    def start_editing(self):
        if self.run_action(self.journal.start_editing) is None and not self.journal.editing:
            return
        if not self.journal.edit_blocks:
            self.journal.add_text_block()
        self.title_area.text = self.journal.title
        self.focus_block(0)
        self.show_focus()
        self.status_message = EDIT_HELP

    def focus_block(self, index):
        blocks = self.journal.edit_blocks
        if not blocks:
            self.block_index = 0
            self.block_area.text = ""
            self.block_area.read_only = True
            return
        self.block_index = max(0, min(len(blocks) - 1, index))
        self.block_area.read_only = False
        self.block_area.text = blocks[self.block_index].text

    def on_title_changed(self, _buffer):
        if self.journal.editing:
            self.journal.set_title(self.title_area.text)

    def on_block_changed(self, _buffer):
        blocks = self.journal.edit_blocks
        if self.journal.editing and 0 <= self.block_index < len(blocks):
            self.journal.update_text_block(blocks[self.block_index].id, self.block_area.text)

    def add_block(self):
        self.journal.add_text_block()
        self.focus_block(len(self.journal.edit_blocks) - 1)
        self.app.layout.focus(self.block_area)

    def remove_block(self):
        blocks = self.journal.edit_blocks
        if not blocks:
            return
        self.journal.remove_text_block(blocks[self.block_index].id)
        self.focus_block(self.block_index)

    def save_current_entry(self):
        """Save the draft of the selected date"""
        entry = self.run_action(self.journal.save)
        self.selected_item = self.first_visible_index()
        self.show_focus()
        if entry is not None:
            self.status_message = f"Entry saved | {VIEW_HELP}"

    def cancel_edit(self):
        """Leave editing and discard the draft"""
        self.select_date(self.journal.selected_date)

    # ----- prompt -----

    def open_prompt(self, mode):
        self.prompt_mode = mode
        self.search_results = []
        self.prompt_area.text = ""
        self.show_focus()

    def close_prompt(self):
        self.prompt_mode = None
        self.search_results = []
        self.prompt_area.text = ""
        self.show_focus()

    def on_prompt_changed(self, _buffer):
        if self.prompt_mode == 'search':
            self.search_results = self.journal.search(self.prompt_area.text)

    def accept_prompt(self, buffer):
        mode = self.prompt_mode
        text = buffer.text
        if mode == 'search':
            results = self.search_results
            self.close_prompt()
            if results:
                self.select_date(parse_day(results[0].date))
        elif mode == 'upload':
            self.close_prompt()
            self.upload_files(text)
        return False

    def upload_files(self, text):
        """Upload each file in turn, then attach the successful ones"""
        try:
            paths = shlex.split(text)
        except ValueError as e:
            self.status_message = f"Error: {e}"
            return
        uploads = []
        failures = []
        for path in paths:
            try:
                uploads.append(self.client.upload_media(path))
            except ApiError as e:
                logger.error(f"Uploading {path} failed: {e}")
                failures.append(Path(path).name)
        if uploads and self.run_action(self.journal.attach_media_batch, uploads) is not None:
            self.title_area.text = self.journal.title
            self.focus_block(self.block_index)
            self.show_focus()
        message = f"Uploaded {len(uploads)} file(s)"
        if failures:
            message = f"Error: could not upload {', '.join(failures)} | " + message
        self.status_message = message

    def run(self):
        """Run the application"""
        self.app.run()


def main():
    config = Config.from_env()
    setup_logger('personal_log', level=config.log_level, log_dir=config.log_dir or Path('logs'), console=False)

    # Server URL from the command line or the environment
    server_url = sys.argv[1] if len(sys.argv) > 1 else config.server_url
    client = JournalClient(server_url)
    if config.auth_user and config.auth_pass:
        try:
            client.login(config.auth_user, config.auth_pass)
        except ApiError as e:
            logger.warning(f"Sign-in failed: {e}")

    ui = JournalUI(client)
    ui.run()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
