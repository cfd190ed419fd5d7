"""spaceleft - disk usage snapshots you can reload without rescanning."""

__version__ = "0.1.0"
