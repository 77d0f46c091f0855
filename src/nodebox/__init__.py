"""nodebox - keep Node.js package and runtime commands inside the project container."""

from __future__ import annotations

__version__ = "0.3.0"
