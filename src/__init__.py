"""Root package for the file cleanup service.

Modules are imported as ``src.<package>`` both from an installed copy and
from a source checkout.
"""

__all__ = []
