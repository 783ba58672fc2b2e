"""OS-backed collaborators for macOS."""

from .bundles import BundleLocator, bundle_for_executable, read_bundle_info
from .launcher import OpenAppLauncher
from .processes import ProcessAppCloser, ProcessAppLister

__all__ = [
    "BundleLocator",
    "OpenAppLauncher",
    "ProcessAppCloser",
    "ProcessAppLister",
    "bundle_for_executable",
    "read_bundle_info",
]
