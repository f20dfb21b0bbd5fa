from .health import HealthChecker, HealthStatus
from .liveness import LivenessMonitor

__all__ = ["HealthChecker", "HealthStatus", "LivenessMonitor"]
