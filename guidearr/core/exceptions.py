"""Exception hierarchy for guidearr.

Configuration errors are fatal to provider construction. Network and
service errors are wrapped with the phase that failed and propagated;
nothing in the core retries on its own.
"""


class GuidearrError(Exception):
    """Base class for all guidearr errors."""


class ProviderConfigurationError(GuidearrError):
    """Provider settings are missing or malformed."""


class GuideProviderError(GuidearrError):
    """An upstream guide provider call failed."""


class SchedulesDirectError(GuideProviderError):
    """Schedules Direct returned an error or could not be reached.

    Attributes:
        endpoint: API path that failed (e.g. "schedules/md5")
        code: Schedules Direct response code, if the API returned one
        status_code: HTTP status code, if a response was received
    """

    # TOKEN_MISSING, TOKEN_EXPIRED
    TOKEN_EXPIRED_CODES = frozenset({1004, 4006})

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        code: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.code = code
        self.status_code = status_code

    @property
    def is_token_error(self) -> bool:
        return self.code in self.TOKEN_EXPIRED_CODES


class XMLTVLoadError(GuideProviderError):
    """An XMLTV document could not be fetched or parsed."""


class ProviderDataError(GuidearrError):
    """Opaque provider state could not be decoded."""


class ScheduleSyncError(GuideProviderError):
    """A phase of the incremental schedule synchronization failed."""

    CHANGE_DETECTION = "change-detection"
    SCHEDULE_FETCH = "schedule-fetch"
    METADATA_FETCH = "metadata-fetch"
    ARTWORK_FETCH = "artwork-fetch"

    def __init__(self, phase: str, message: str):
        super().__init__(f"{phase} failed: {message}")
        self.phase = phase


class SyncCancelledError(GuidearrError):
    """A synchronization run was cancelled between network phases."""

    def __init__(self, phase: str):
        super().__init__(f"synchronization cancelled before {phase}")
        self.phase = phase


class LineupsNotSupportedError(GuidearrError):
    """The provider does not support lineup subscriptions."""


class LineupCompositionError(GuidearrError):
    """A lineup channel could not be joined with its video track or guide channel."""

    def __init__(self, lineup_channel_id: int | None, message: str):
        super().__init__(message)
        self.lineup_channel_id = lineup_channel_id


class GuideUpdateError(GuidearrError):
    """A guide source update run failed; persisted state was left unchanged."""

    def __init__(self, guide_source_id: int, message: str, phase: str | None = None):
        super().__init__(message)
        self.guide_source_id = guide_source_id
        self.phase = phase
