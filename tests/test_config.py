# tests/test_config.py
"""
Tests for AnalysisConfig validation and JSON loading.
"""

import json

import pytest

from divzero.config import AnalysisConfig, load_config
from divzero.errors import ConfigError
from divzero.lattice import Zeroness


class TestValidate:

    def test_defaults_are_clean(self):
        config = AnalysisConfig()
        assert config.validate() == []
        assert config.integral_types == ("int", "long", "long long")
        assert not config.use_valueflow

    @pytest.mark.parametrize("kwargs", [
        {"max_iterations": 0},
        {"timeout_seconds": 0},
        {"jobs": 0},
        {"integral_types": ()},
    ])
    def test_rejects_unusable_settings(self, kwargs):
        with pytest.raises(ConfigError):
            AnalysisConfig(**kwargs).validate()

    def test_warns_on_questionable_settings(self):
        config = AnalysisConfig(
            max_iterations=10,
            integral_types=("int", "integer"),
            parameter_contracts={"f": {"n": Zeroness.BOTTOM}},
        )
        warnings = config.validate()
        assert len(warnings) == 3
        assert any("'integer'" in w for w in warnings)

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestFromDict:

    def test_round_trip_of_contracts(self):
        config = AnalysisConfig.from_dict({
            "max_iterations": "500",
            "timeout_seconds": 2,
            "parameter_contracts": {"scale": {"den": "nonzero", "num": "unknown"}},
        })
        assert config.max_iterations == 500
        assert config.timeout_seconds == 2.0
        assert config.contract_for("scale") == {"den": Zeroness.NON_ZERO, "num": Zeroness.TOP}
        assert config.contract_for("other") == {}
        assert config.to_dict()["parameter_contracts"] == {
            "scale": {"den": "non_zero", "num": "top"},
        }

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="max_iters"):
            AnalysisConfig.from_dict({"max_iters": 5})

    @pytest.mark.parametrize("data", [
        {"use_valueflow": "yes"},
        {"integral_types": "int"},
        {"jobs": "many"},
        {"parameter_contracts": {"f": {"n": "sometimes"}}},
        {"parameter_contracts": {"f": ["n"]}},
        {"max_iterations": -1},
    ])
    def test_bad_values(self, data):
        with pytest.raises(ConfigError):
            AnalysisConfig.from_dict(data)

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError, match="object"):
            AnalysisConfig.from_dict(["jobs", 2])


class TestLoadConfig:

    def test_load(self, tmp_path):
        path = tmp_path / "divzero.json"
        path.write_text(json.dumps({"jobs": 3, "use_valueflow": True}))
        config = load_config(path)
        assert config.jobs == 3
        assert config.use_valueflow

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path / "absent.json")

    def test_invalid_json_reports_line(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{\n  "jobs": ,\n}')
        with pytest.raises(ConfigError, match=r"bad\.json:2"):
            load_config(path)

    def test_warnings_are_logged(self, tmp_path, caplog):
        path = tmp_path / "slow.json"
        path.write_text(json.dumps({"max_iterations": 5}))
        with caplog.at_level("WARNING", logger="divzero"):
            load_config(path)
        assert "will abort most functions" in caplog.text
