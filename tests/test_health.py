"""Tests for the HTTP health probe."""

from bunbox_deploy.services.health import HealthChecker


def test_healthy_endpoint(shell, target):
    assert HealthChecker(shell, target).probe()
    assert shell.tool_log("curl") == ["/api/health"]


def test_falls_back_to_root_on_404(shell, target):
    shell.set_http_status("/api/health", 404)
    assert HealthChecker(shell, target).probe()
    assert shell.tool_log("curl") == ["/api/health", "/"]


def test_server_error_is_unhealthy(shell, target):
    shell.set_http_status("/api/health", 502)
    assert not HealthChecker(shell, target).probe()


def test_redirect_counts_as_healthy(shell, target_factory):
    target = target_factory(health_path="/status")
    shell.set_http_status("/status", 301)
    assert HealthChecker(shell, target).probe()


def test_diagnose_zero_routes(shell, target):
    shell.state_file("pm2_logs").write_text("Bunbox ready with 0 routes\n")
    assert "0 routes" in HealthChecker(shell, target).diagnose()


def test_diagnose_errors(shell, target):
    shell.state_file("pm2_logs").write_text("TypeError: x is undefined\n")
    assert "check PM2 logs" in HealthChecker(shell, target).diagnose()


def test_diagnose_default(shell, target):
    assert "still be starting" in HealthChecker(shell, target).diagnose()
