"""guidearr - guide and channel synchronization for virtual IPTV tuners."""

from guidearr.config import VERSION

__version__ = VERSION
