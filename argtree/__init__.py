__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'argtree'
__author__ = 'Eiko Reishin (影皇嶺臣)'
__license__ = 'MIT'
__version__ = "0.1.0"

from .arguments import *
from .builder import *
from .faults import *
from .handlers import *
from .processor import *
from .queues import *
from .shell import *
from .slots import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(0, 1, 0, "final", 0, "")

__all__ = (
    "__path__",
    "__title__",
    "__author__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the schema markers
__all__ += arguments.__all__  # type: ignore[attr-defined]
# Load the exposed API of the builder
__all__ += builder.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the handlers
__all__ += handlers.__all__  # type: ignore[attr-defined]
# Load the exposed API of the processor
__all__ += processor.__all__  # type: ignore[attr-defined]
# Load the exposed API of the token queue
__all__ += queues.__all__  # type: ignore[attr-defined]
# Load the exposed API of the shell
__all__ += shell.__all__  # type: ignore[attr-defined]
# Load the exposed API of the slots
__all__ += slots.__all__  # type: ignore[attr-defined]
