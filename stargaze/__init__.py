"""In-memory allocation and cron chain modules, with readiness and watcher tools."""

__version__ = "0.1.0"