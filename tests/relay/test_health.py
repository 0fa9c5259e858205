"""Tests for liveness endpoints."""

from __future__ import annotations


class TestHealth:
    def test_banner(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.text == "Hoho bot is alive!"

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0", "pending_completions": 0}
