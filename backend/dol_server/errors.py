class ExtensionError(Exception):
    """Raised when an extension cannot be created, started or stopped."""


class ConfigError(ExtensionError):
    """Raised for malformed configuration, either the file or an extension's entry."""


class SaveError(Exception):
    """A recoverable failure while reading or writing the save record."""


class SaveLockTimeout(SaveError):
    pass


class FatalLockError(BaseException):
    """The save lock could not be released.

    The lock state on disk can no longer be trusted, so this is not meant to be
    handled by request code; the application guard terminates the process.
    """
