"""Function to test the CLI"""

import sys

import pytest
import yaml  # type: ignore

import xtrackdem
from xtrackdem import xtrackdem_cli


class TestCLI:
    def test_parser(self) -> None:
        args = xtrackdem_cli.get_parser().parse_args(["--loglevel", "DEBUG", "calibrate", "config.yaml"])

        assert args.command == "calibrate"
        assert args.config == "config.yaml"
        assert args.loglevel == "DEBUG"

    def test_version(self, capsys) -> None:  # type: ignore
        with pytest.raises(SystemExit) as e:
            xtrackdem_cli.get_parser().parse_args(["--version"])

        assert e.value.code == 0
        assert xtrackdem.__version__ in capsys.readouterr().out

    def test_help_without_command(self, monkeypatch, capsys) -> None:  # type: ignore
        monkeypatch.setattr(sys, "argv", ["xtrackdem"])
        xtrackdem_cli.main()

        assert "calibrate" in capsys.readouterr().out

    def test_missing_config(self, monkeypatch, tmp_path) -> None:  # type: ignore
        monkeypatch.setattr(sys, "argv", ["xtrackdem", "calibrate", str(tmp_path / "no_config.yaml")])

        with pytest.raises(SystemExit) as e:
            xtrackdem_cli.main()
        assert e.value.code == 1

    @pytest.mark.filterwarnings("ignore::UserWarning")  # type: ignore
    def test_calibrate(self, monkeypatch, calibration_inputs, tmp_path) -> None:  # type: ignore
        """Check that the calibrate subcommand runs the workflow from a YAML file."""
        config = {
            "inputs": {
                "reference_elev": {"path_to_elev": calibration_inputs["path_to_elev"]},
                "track": {"path_to_csv": calibration_inputs["path_to_csv"]},
                "product": "ATL06-20",
            },
            "calibration": {"run": False},
            "outputs": {"path": calibration_inputs["outputs"]},
        }
        path_config = tmp_path / "config.yaml"
        with open(path_config, "w", encoding="utf-8") as f:
            yaml.dump(config, f)

        monkeypatch.setattr(sys, "argv", ["xtrackdem", "--loglevel", "WARNING", "calibrate", str(path_config)])
        xtrackdem_cli.main()

        assert (tmp_path / "outputs" / "calibration.yaml").exists()
        assert (tmp_path / "outputs" / "tables" / "reference_elevations.csv").exists()
