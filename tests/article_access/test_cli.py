"""Tests for the ``inkreader`` command line."""

from __future__ import annotations

import json

import httpx
import pytest
import yaml
from typer.testing import CliRunner

from InkReader.ArticleAccess import cli
from tests.article_access.fakes import OWNER_CAP, PUBLICATION_ID, RPC, decode_json

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, config):
    path = tmp_path / "inkreader.yaml"
    path.write_text(yaml.safe_dump(config.model_dump(mode="json")), encoding="utf-8")
    return str(path)


@pytest.fixture(autouse=True)
def _route_cli_through_router(monkeypatch, router):
    monkeypatch.delenv("INKREADER_CONFIG", raising=False)
    monkeypatch.setattr(cli, "build_http_client", lambda *args, **kwargs: router.client())


def _serve_ledger(router, *, owner_cap_for=None):
    def handler(request: httpx.Request) -> httpx.Response:
        body = decode_json(request)
        if body["method"] == "sui_getObject":
            result = {"error": {"code": "notExists"}}
        else:
            struct_type = body["params"][1]["filter"]["StructType"]
            data = []
            if owner_cap_for and struct_type.endswith(OWNER_CAP):
                data = [{"data": {"objectId": "0xcap", "content": {"fields": {"publication_id": owner_cap_for}}}}]
            result = {"data": data, "hasNextPage": False}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    router.add("POST", RPC, handler)


class TestReadCommand:
    """``inkreader read``."""

    def test_prints_markdown(self, config_file, serve_plain_article):
        serve_plain_article("my-article", "# Hello\n\nWorld")

        result = runner.invoke(cli.app, ["read", "my-article", "--config", config_file])

        assert result.exit_code == 0
        assert "# Hello" in result.stdout

    def test_json_output(self, config_file, serve_plain_article):
        serve_plain_article("my-article", "body")

        result = runner.invoke(cli.app, ["read", "my-article", "--config", config_file, "--json"])

        assert result.exit_code == 0
        state = json.loads(result.stdout)
        assert state["stage"] == "ready"
        assert state["content"] == "body"
        assert state["metadata"]["slug"] == "my-article"

    def test_encrypted_article_needs_wallet(self, config_file, serve_gated_article):
        serve_gated_article()

        result = runner.invoke(cli.app, ["read", "gated-article", "--config", config_file])

        assert result.exit_code == 1
        assert "wallet-required" in result.output

    def test_bad_config_exits(self, tmp_path):
        result = runner.invoke(cli.app, ["read", "my-article", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1


class TestExplainAccessCommand:
    """``inkreader explain-access``."""

    def test_shows_resolved_branch(self, config_file, router):
        _serve_ledger(router, owner_cap_for=PUBLICATION_ID)

        result = runner.invoke(
            cli.app, ["explain-access", PUBLICATION_ID, "--address", "0xcc", "--config", config_file]
        )

        assert result.exit_code == 0
        assert "publication_owner" in result.output

    def test_no_credential_exit_code(self, config_file, router):
        _serve_ledger(router)

        result = runner.invoke(
            cli.app, ["explain-access", PUBLICATION_ID, "--address", "0xcc", "--config", config_file]
        )

        assert result.exit_code == 2


class TestConfigCommands:
    """``print-config``, ``validate-config`` and ``config-schema``."""

    def test_print_config_raw(self, config_file):
        result = runner.invoke(cli.app, ["print-config", "--config", config_file, "--raw"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["indexer"]["base_url"] == "http://indexer.test"

    def test_config_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("INKREADER_CONFIG", config_file)

        result = runner.invoke(cli.app, ["print-config", "--raw"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["indexer"]["base_url"] == "http://indexer.test"

    def test_validate_config_ok(self, config_file):
        result = runner.invoke(cli.app, ["validate-config", config_file])

        assert result.exit_code == 0

    def test_validate_config_rejects_unknown_keys(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("indexer:\n  surprise: true\n", encoding="utf-8")

        result = runner.invoke(cli.app, ["validate-config", str(path)])

        assert result.exit_code == 1

    def test_config_schema(self):
        result = runner.invoke(cli.app, ["config-schema"])

        assert result.exit_code == 0
        assert "properties" in json.loads(result.stdout)
