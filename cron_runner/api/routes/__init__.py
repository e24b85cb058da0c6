# API routes
from cron_runner.api.routes import health
from cron_runner.api.routes import trigger

__all__ = ["health", "trigger"]
