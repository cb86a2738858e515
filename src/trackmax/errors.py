# trackmax/errors

"""
trackmax.errors

Central exception hierarchy for trackmax.

Rationale:
  - Readers and pipeline passes raise specific, meaningful errors.
  - Callers can catch TrackmaxError (broad) or specific subclasses (narrow).
  - Recoverable per-point anomalies never raise; they are counted and logged.
"""


class TrackmaxError(RuntimeError):
    """Base class for all trackmax runtime errors."""


# ---- Input / reader errors ---------------------

class InputError(TrackmaxError):
    """Errors reading an input track file."""

class UnsupportedInputError(InputError):
    """The input file suffix is not one of the supported formats."""

class InvalidInputError(InputError):
    """Input file could not be parsed or did not contain expected data structures."""


# ---- Output errors -----------------------------

class OutputError(TrackmaxError):
    """The output file could not be written."""


# ---- Track / pipeline errors -------------------

class TrackError(TrackmaxError):
    """Unrecoverable problems with the track data itself."""

class EmptyTrackError(TrackError):
    """No track points were found in the input file(s)."""

class MissingElevationError(TrackError):
    """A track point has no elevation value."""

class MissingTimestampError(TrackError):
    """A track point has no timestamp and there is no way to synthesize one."""


# ---- Configuration errors ----------------------

class ConfigError(TrackmaxError):
    """Invalid configuration values or a malformed config file."""
