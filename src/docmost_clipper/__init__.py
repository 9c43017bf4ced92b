"""Docmost Clipper - clip web pages into Docmost spaces.

Features:
- Readable article extraction from a live browser page or a fetched URL
- Selection clipping with markup sanitization
- Cookie-session login, space listing and creation
- Self-contained HTML import into a chosen space

Usage:
    # Log in and remember the server
    docmost-clip connect https://docs.example.com --email me@example.com

    # Clip a URL into the last used space
    docmost-clip clip https://example.com/article

    # Clip the active tab of a Chromium started with --remote-debugging-port
    docmost-clip clip --cdp --selection
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("docmost-clipper")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
