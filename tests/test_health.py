"""
Tests for component health checks.
"""

from conftest import FakeNotifier
from data_processing.monitoring.health import HealthChecker


def test_all_components_healthy(components):
    result = HealthChecker(components).comprehensive_health_check()

    assert result['overall_status'] == 'healthy'
    assert set(result['components']) == {'store', 'notifier', 'object_source'}
    assert result['components']['store']['backend'] == 'dynamodb'
    assert result['components']['notifier']['backend'] == 'FakeNotifier'
    assert result['components']['object_source']['bucket'] == 'data-processing-bucket'


def test_failed_check_marks_overall_unhealthy(components):
    class DownNotifier(FakeNotifier):
        def health_check(self):
            return False

    components.notifier = DownNotifier()

    result = HealthChecker(components).comprehensive_health_check()

    assert result['overall_status'] == 'unhealthy'
    assert result['components']['notifier']['status'] == 'unhealthy'
    assert result['components']['store']['status'] == 'healthy'


def test_raising_check_is_reported(components, store):
    def explode():
        raise RuntimeError('connection refused')

    store.health_check = explode

    result = HealthChecker(components).check_store_health()

    assert result['status'] == 'unhealthy'
    assert result['error'] == 'connection refused'
    assert 'response_time_ms' in result
