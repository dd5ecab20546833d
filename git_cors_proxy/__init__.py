"""git-cors-proxy - CORS proxy for browser-based Git clients."""

from importlib.metadata import PackageNotFoundError, version as _pkg_version

try:
    __version__ = _pkg_version("git-cors-proxy")
except PackageNotFoundError:
    __version__ = "1.0.0"  # fallback for editable installs / dev
