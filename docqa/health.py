"""Health check results for the status page."""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


@dataclass
class HealthCheck:
    ok: bool
    response_time_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": "ok" if self.ok else "error",
            "responseTime": round(self.response_time_ms),
        }
        if self.error:
            result["error"] = self.error
        return result


def run_check(probe: Callable[[], bool]) -> HealthCheck:
    """Time a probe; a probe that raises is reported as failed, not propagated."""
    start = time.perf_counter()
    try:
        ok = bool(probe())
        error = None
    except Exception as e:
        ok = False
        error = str(e)
    return HealthCheck(
        ok=ok,
        response_time_ms=(time.perf_counter() - start) * 1000,
        error=error,
    )
