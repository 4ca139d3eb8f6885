"""Tests for Caddy registration."""

import json

import pytest

from bunbox_deploy.exceptions import RemoteCommandError
from bunbox_deploy.services.proxy import CaddyProxy


@pytest.fixture
def caddy_dirs(tmp_path):
    etc = tmp_path / "etc" / "caddy"
    etc.mkdir(parents=True)
    caddyfile = etc / "Caddyfile"
    caddyfile.write_text("{\n\temail ops@example.com\n}\n")
    return etc / "sites", caddyfile


def make_proxy(shell, target, caddy_dirs):
    sites_dir, caddyfile = caddy_dirs
    return CaddyProxy(shell, target, sites_dir=str(sites_dir), caddyfile=str(caddyfile))


def test_first_registration(shell, target_factory, caddy_dirs, deploy_path):
    target = target_factory(domain="app.example.com", port=4000)
    proxy = make_proxy(shell, target, caddy_dirs)
    sites_dir, caddyfile = caddy_dirs
    shell.exec(f"mkdir -p {deploy_path}")

    outcome = proxy.configure()

    assert outcome.changed and outcome.first_deploy
    site = (sites_dir / "app.caddy").read_text()
    assert "app.example.com {" in site
    assert "reverse_proxy localhost:4000" in site
    assert caddyfile.read_text().splitlines()[0] == f"import {sites_dir}/*.caddy"
    assert "email ops@example.com" in caddyfile.read_text()
    assert shell.tool_log("caddy") == [f"validate --config {caddyfile}"]
    assert shell.tool_log("systemctl") == ["reload caddy"]

    meta = json.loads(open(f"{deploy_path}/.bunbox-meta.json").read())
    assert meta == {"appName": "app", "domain": "app.example.com", "port": 4000}


def test_registration_is_idempotent(shell, target_factory, caddy_dirs, deploy_path):
    """A second run changes nothing and does not reload Caddy."""
    target = target_factory(domain="app.example.com")
    proxy = make_proxy(shell, target, caddy_dirs)
    shell.exec(f"mkdir -p {deploy_path}")
    proxy.configure()
    caddyfile_before = caddy_dirs[1].read_text()

    assert proxy.is_registered()
    outcome = proxy.configure()

    assert not outcome.changed
    assert not outcome.first_deploy
    assert caddy_dirs[1].read_text() == caddyfile_before
    assert shell.tool_log("systemctl") == ["reload caddy"]


def test_rename_removes_old_site(shell, target_factory, caddy_dirs, deploy_path):
    shell.exec(f"mkdir -p {deploy_path}")
    make_proxy(shell, target_factory(domain="app.example.com"), caddy_dirs).configure()

    renamed = target_factory(domain="app.example.com", name="shop")
    make_proxy(shell, renamed, caddy_dirs).configure()

    sites_dir = caddy_dirs[0]
    assert not (sites_dir / "app.caddy").exists()
    assert (sites_dir / "shop.caddy").exists()


def test_invalid_config_raises(shell, target_factory, caddy_dirs, deploy_path):
    shell.exec(f"mkdir -p {deploy_path}")
    shell.state_file("caddy_invalid").touch()
    proxy = make_proxy(shell, target_factory(domain="app.example.com"), caddy_dirs)

    with pytest.raises(RemoteCommandError) as exc:
        proxy.configure()
    assert "unrecognized directive" in exc.value.context
    assert shell.tool_log("systemctl") == []


def test_port_conflict_detection(shell, target_factory, caddy_dirs):
    sites_dir = caddy_dirs[0]
    sites_dir.mkdir()
    (sites_dir / "other.caddy").write_text("other.com {\n\treverse_proxy localhost:3000\n}\n")
    (sites_dir / "near.caddy").write_text("near.com {\n\treverse_proxy localhost:30001\n}\n")

    def conflict(**overrides):
        target = target_factory(domain="a.com", **overrides)
        return make_proxy(shell, target, caddy_dirs).check_port_conflict()

    assert conflict() == "other"
    assert conflict(name="other") is None
    assert conflict(port=3001) is None


def test_render_site_requires_domain(shell, target, caddy_dirs):
    with pytest.raises(ValueError):
        make_proxy(shell, target, caddy_dirs).render_site()
