class PersonalLogError(Exception):
    """Base class for all journal errors"""


class ConfigError(PersonalLogError):
    pass


class EntryStoreError(PersonalLogError):
    """The entries document could not be read or written"""


class MediaStoreError(PersonalLogError):
    """A media blob could not be read or written"""


class MediaNotFoundError(MediaStoreError):
    """No blob is stored under the requested filename"""

    def __init__(self, filename):
        super().__init__(f"File not found: {filename}")
        self.filename = filename


class JournalError(PersonalLogError):
    """An edit was refused by the journal model"""


class FutureDateError(JournalError):
    def __init__(self, day):
        super().__init__(f"Future entries are not allowed ({day.isoformat()})")
        self.day = day


class NotEditingError(JournalError):
    pass


class ReorderError(JournalError):
    pass


class UnknownItemError(JournalError):
    pass


class ApiError(PersonalLogError):
    """A request to the journal server failed"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code
