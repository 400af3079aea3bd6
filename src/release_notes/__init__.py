"""Release Notes Service.

Fetches GitHub releases, reduces their markdown bodies to merged text items
for structured rendering, and caches recent results in memory.
"""

__version__ = "0.1.0"
