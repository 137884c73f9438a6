"""
Settings loading and config-to-kernel bridges.

get_active_settings() merges defaults.yaml, an optional override file and
the environment, then logs an INVOICING_CONFIG_TRACE record.
"""

from pathlib import Path

import pytest
import yaml

from invoicing_config import get_active_settings
from invoicing_config.bridges import build_ledger_options, init_engine
from invoicing_config.loader import compute_checksum, load_yaml_file, merge
from invoicing_kernel.db.engine import reset_engine
from invoicing_kernel.services.invoice_ledger import LedgerOptions


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "override.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_defaults(self):
        settings = get_active_settings(environ={})
        assert settings.database_url == "sqlite:///invoicing.db"
        assert settings.document_prefix == "FACT"
        assert settings.sequence_width == 4
        assert settings.max_number_attempts == 3
        assert settings.due_soon_days == 7
        assert settings.log_level == "INFO"
        assert len(settings.checksum) == 64

    def test_trace_is_logged(self, captured_logs):
        settings = get_active_settings(environ={})
        traces = [r for r in captured_logs() if r["message"] == "INVOICING_CONFIG_TRACE"]
        assert traces[0]["checksum"] == settings.checksum
        assert traces[0]["document_prefix"] == "FACT"


class TestOverrides:

    def test_override_file(self, tmp_path):
        path = _write(tmp_path, {"numbering": {"document_prefix": "INV"}, "logging": {"level": "debug"}})
        settings = get_active_settings(config_path=path, environ={})
        assert settings.document_prefix == "INV"
        assert settings.sequence_width == 4
        assert settings.log_level == "DEBUG"

    def test_override_file_from_environment(self, tmp_path):
        path = _write(tmp_path, {"due_dates": {"due_soon_days": 14}})
        settings = get_active_settings(environ={"INVOICING_CONFIG": str(path)})
        assert settings.due_soon_days == 14

    def test_database_url_environment_wins(self, tmp_path):
        path = _write(tmp_path, {"database": {"url": "sqlite:///from-file.db"}})
        settings = get_active_settings(
            config_path=path,
            environ={"DATABASE_URL": "postgresql://ledger@localhost/invoicing"},
        )
        assert settings.database_url == "postgresql://ledger@localhost/invoicing"

    def test_checksum_tracks_content(self, tmp_path):
        base = get_active_settings(environ={})
        changed = get_active_settings(
            config_path=_write(tmp_path, {"numbering": {"sequence_width": 6}}), environ={}
        )
        assert base.checksum != changed.checksum


class TestInvalid:

    @pytest.mark.parametrize(
        "override",
        [
            {"numbering": {"document_prefix": "FA-CT"}},
            {"numbering": {"document_prefix": ""}},
            {"numbering": {"sequence_width": 0}},
            {"numbering": {"max_number_attempts": "3"}},
            {"due_dates": {"due_soon_days": -1}},
            {"logging": {"level": "LOUD"}},
            {"database": {"url": ""}},
            {"numbering": ["not", "a", "mapping"]},
        ],
    )
    def test_invalid_values_rejected(self, tmp_path, override):
        with pytest.raises(ValueError):
            get_active_settings(config_path=_write(tmp_path, override), environ={})

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError):
            load_yaml_file(_write(tmp_path, ["a", "b"]))

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(config_path=tmp_path / "absent.yaml", environ={})


class TestLoaderHelpers:

    def test_merge_is_recursive_and_pure(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = merge(base, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}
        assert base["a"]["y"] == 2

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestBridges:

    def test_build_ledger_options(self, tmp_path):
        settings = get_active_settings(
            config_path=_write(
                tmp_path,
                {"numbering": {"document_prefix": "INV", "sequence_width": 5, "max_number_attempts": 2},
                 "due_dates": {"due_soon_days": 3}},
            ),
            environ={},
        )
        assert build_ledger_options(settings) == LedgerOptions(
            document_prefix="INV", sequence_width=5, max_number_attempts=2, due_soon_days=3
        )

    def test_init_engine(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'bridge.db'}"
        settings = get_active_settings(environ={"DATABASE_URL": url})
        try:
            engine = init_engine(settings)
            assert str(engine.url) == url
        finally:
            reset_engine()
