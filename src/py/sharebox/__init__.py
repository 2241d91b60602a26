from .http.model import (
    HTTPRequest,
    HTTPResponse,
)  # NOQA: F401
from .decorators import on, expose, post  # NOQA: F401
from .errors import (
    ShareboxError,
    ValidationError,
    NotFoundError,
    UnsatisfiableRangeError,
    StorageError,
)  # NOQA: F401
from .config import SharingConfig  # NOQA: F401
from .model import Service, Application, mount  # NOQA: F401
from .server import run  # NOQA: F401
from .services.files import SharingService  # NOQA: F401


# EOF
