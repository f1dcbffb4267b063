"""Exception taxonomy shared by the bridge, the loader and the dispatcher."""


class AppleMCPError(Exception):
    """Base class for every error raised on purpose by apple-mcp."""


class AutomationError(AppleMCPError):
    """An automation call against a macOS application did not succeed.

    ``cause`` holds the last underlying error (usually a ``ScriptError``)
    so callers can log provenance without unwrapping ``__cause__``.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ApplicationUnreachable(AutomationError):
    """The app is not running and could not be launched, or refuses probes."""


class AutomationQueryFailed(AutomationError):
    """A well-formed automation call errored with no recoverable fallback."""


class InvalidArguments(AppleMCPError):
    """A tool was invoked with arguments of the wrong shape."""


class UnknownTool(AppleMCPError):
    """A tool name that the dispatcher does not serve."""


class ModuleLoadFailed(AppleMCPError):
    """Importing a collaborator module raised."""
