import json

from typer.testing import CliRunner

from cosmos_yield.main import app

runner = CliRunner()


def test_show_config_prints_effective_settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COSMOS_YIELD_CONFIG", raising=False)

    result = runner.invoke(app, ["--show-config", "--source", "osmosis", "--format", "json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["sources"] == ["osmosis"]
    assert payload["output_format"] == "json"


def test_unknown_source_is_rejected(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COSMOS_YIELD_CONFIG", raising=False)

    result = runner.invoke(app, ["--source", "uniswap"])

    assert result.exit_code == 2
