"""Tests for shared helpers."""

import pytest

from bunbox_deploy.utils import render_stub


def test_render_stub_accepts_name_variable():
    """Stubs use `name` as a template variable; it must not clash with the stub argument."""
    site = render_stub("site.caddy.j2", name="shop", domain="shop.example.com", port=4000)

    assert site.startswith("# Managed by bunbox-deploy (shop)")
    assert "shop.example.com {" in site
    assert "reverse_proxy localhost:4000" in site


def test_render_stub_missing():
    with pytest.raises(FileNotFoundError):
        render_stub("nope.j2")
