"""Tests for PM2 supervision."""

import time

from bunbox_deploy.services.process_manager import PM2Manager


def test_ecosystem_file(shell, target_factory, deploy_path):
    target = target_factory(port=4000, env={"API_KEY": "k'\"ey"}, script="serve")
    pm2 = PM2Manager(shell, target)

    rendered = pm2.render_ecosystem("apps/web")

    assert 'name: "app"' in rendered
    assert 'args: "run serve"' in rendered
    assert f'cwd: "{deploy_path}/current/apps/web"' in rendered
    assert "PORT: 4000" in rendered
    assert '"API_KEY": "k\\u0027\\"ey"' in rendered
    assert f'"{deploy_path}/logs/error.log"' in rendered


def test_start_then_reload(shell, target, deploy_path):
    pm2 = PM2Manager(shell, target)

    assert pm2.start_or_reload() == "started"
    assert open(f"{deploy_path}/ecosystem.config.js").read().startswith("module.exports")
    assert shell.tool_log("pm2")[-2:] == ["start ecosystem.config.js", "save"]

    assert pm2.start_or_reload() == "reloaded"
    assert shell.tool_log("pm2")[-1] == "reload app --update-env"


def test_status_from_jlist(shell, target):
    now_ms = time.time() * 1000
    shell.set_pm2_processes(
        [
            {"name": "other", "pm2_env": {"status": "stopped"}},
            {
                "name": "app",
                "pm2_env": {"status": "online", "pm_uptime": now_ms - 90_000, "restart_time": 2},
                "monit": {"memory": 50 * 1024 * 1024, "cpu": 3},
            },
        ]
    )
    status = PM2Manager(shell, target).status()

    assert status.status == "online"
    assert status.uptime.startswith("1m")
    assert status.memory == "50.0MB"
    assert status.cpu == "3%"
    assert status.restarts == 2


def test_status_unknown_process(shell, target):
    assert PM2Manager(shell, target).status() is None
