"""Create RPM packages for Electron apps."""

from .builder import PackageBuilder, RpmTarget, create_installer
from .options import Configuration, resolve_options

__version__ = "0.1.0"

__all__ = [
    "Configuration",
    "PackageBuilder",
    "RpmTarget",
    "create_installer",
    "resolve_options",
    "__version__",
]
