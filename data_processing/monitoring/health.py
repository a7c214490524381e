"""
Health checks for the store, notifier and object source.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict

from data_processing.components import Components

logger = logging.getLogger(__name__)


class HealthChecker:
    """Provides health checks for system components."""

    def __init__(self, components: Components):
        self.components = components

    def _timed_check(self, name: str, check: Callable[[], bool], **details) -> Dict[str, Any]:
        start_time = datetime.now()

        try:
            healthy = check()
            result = {'status': 'healthy' if healthy else 'unhealthy'}
            if not healthy:
                result['error'] = f"{name} check failed"
        except Exception as e:
            logger.error(f"{name} health check failed: {e}")
            result = {'status': 'unhealthy', 'error': str(e)}

        result.update(details)
        result['response_time_ms'] = int((datetime.now() - start_time).total_seconds() * 1000)
        result['timestamp'] = datetime.now().isoformat()
        return result

    def check_store_health(self) -> Dict[str, Any]:
        """Check record store connectivity."""
        store = self.components.store
        return self._timed_check(
            'Store', store.health_check,
            backend=self.components.settings.store_backend
        )

    def check_notifier_health(self) -> Dict[str, Any]:
        notifier = self.components.notifier
        return self._timed_check(
            'Notifier', notifier.health_check,
            backend=type(notifier).__name__
        )

    def check_object_source_health(self) -> Dict[str, Any]:
        """Check that the input bucket (or local directory) is reachable."""
        bucket = self.components.settings.bucket_name
        source = self.components.object_source
        return self._timed_check(
            'Object source', lambda: source.health_check(bucket),
            bucket=bucket
        )

    def comprehensive_health_check(self) -> Dict[str, Any]:
        """Perform health check of all components."""
        start_time = datetime.now()

        components = {
            'store': self.check_store_health(),
            'notifier': self.check_notifier_health(),
            'object_source': self.check_object_source_health(),
        }
        overall_healthy = all(c['status'] == 'healthy' for c in components.values())

        return {
            'overall_status': 'healthy' if overall_healthy else 'unhealthy',
            'response_time_ms': int((datetime.now() - start_time).total_seconds() * 1000),
            'timestamp': datetime.now().isoformat(),
            'components': components,
        }
