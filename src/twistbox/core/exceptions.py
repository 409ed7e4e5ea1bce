"""
Exceptions for TwistBox
Every engine failure derives from TwistBoxError so callers have one catch-all.
All of them take a single message so they survive pickling across the worker boundary.
"""


class TwistBoxError(Exception):
    # general container for errors
    pass


class FormatError(TwistBoxError):
    # raised when the magic tag is missing or header/framing is malformed or truncated
    pass


class AuthenticationFailure(TwistBoxError):
    # raised when a chunk tag does not verify (wrong passphrase or tampered data)
    pass


class IOFailure(TwistBoxError):
    # raised when reading the input or writing the output fails
    pass


class CancelledOperation(TwistBoxError):
    # raised when the caller abandons an operation
    pass


class WorkerCrashedError(TwistBoxError):
    # raised when the worker process exits without reporting an outcome
    pass


class SettingsError(TwistBoxError):
    # raised when the settings file cannot be parsed
    pass
