"""Error taxonomy surfaced at the command boundary."""


class VulnPkgError(Exception):
    """Base class for every failure the CLI reports to the user."""


class AppNotFoundError(VulnPkgError):
    def __init__(self, name: str):
        super().__init__(f"Application '{name}' not found in manifest")
        self.name = name


class AppNotInstalledError(VulnPkgError):
    def __init__(self, name: str):
        super().__init__(f"Application '{name}' is not installed")
        self.name = name


class AppAlreadyRunningError(VulnPkgError):
    def __init__(self, name: str):
        super().__init__(f"Application '{name}' is already running")
        self.name = name


class AppNotRunningError(VulnPkgError):
    def __init__(self, name: str):
        super().__init__(f"Application '{name}' is not running")
        self.name = name


class AppNotRebuildableError(VulnPkgError):
    def __init__(self, name: str):
        super().__init__(f"Application '{name}' is a prebuilt package and cannot be rebuilt")
        self.name = name


class ManifestValidationError(VulnPkgError):
    def __init__(self, message: str):
        super().__init__(f"Manifest validation error: {message}")


class ManifestParseError(VulnPkgError):
    def __init__(self, message: str):
        super().__init__(f"Failed to parse manifest: {message}")


class ManifestRejectedError(VulnPkgError):
    def __init__(self):
        super().__init__("Manifest was not accepted")


class RemoteFetchError(VulnPkgError):
    """Network or HTTP failure while fetching a remote resource."""

    what = "resource"

    def __init__(self, url: str, reason):
        super().__init__(f"Failed to fetch {self.what} from {url}: {reason}")
        self.url = url
        self.reason = reason


class ManifestFetchError(RemoteFetchError):
    what = "manifest"


class DockerfileFetchError(RemoteFetchError):
    what = "Dockerfile"


class ContextFetchError(RemoteFetchError):
    what = "build context"


class GitError(VulnPkgError):
    pass


class GitCloneError(GitError):
    def __init__(self, repo: str, message: str):
        super().__init__(f"Failed to clone repository '{repo}': {message}")
        self.repo = repo


class GitCheckoutError(GitError):
    def __init__(self, ref: str, message: str):
        super().__init__(f"Failed to checkout ref '{ref}': {message}")
        self.ref = ref


class ImageBuildError(VulnPkgError):
    def __init__(self, image: str, message: str):
        super().__init__(f"Failed to build image '{image}': {message}")
        self.image = image
        self.message = message


class PortRangeExhaustedError(VulnPkgError):
    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Cannot allocate {requested} host port(s): only {available} left in the allocation range"
        )
        self.requested = requested
        self.available = available


class DaemonError(VulnPkgError):
    """Any other Docker daemon failure, wrapped with what we were doing."""

    def __init__(self, context: str, cause: Exception):
        super().__init__(f"Docker error while {context}: {cause}")
        self.context = context
        self.cause = cause


class StateError(VulnPkgError):
    def __init__(self, message: str):
        super().__init__(f"State error: {message}")
