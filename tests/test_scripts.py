import matplotlib
matplotlib.use("Agg")

import pytest

import run_experiments
import visualize
from conftest import SQUARE, coord_text
from tspsolver import SolverConfig, parse_tsplib


def test_visualize_empty_instance_exits_cleanly(tmp_path):
    inst = parse_tsplib("NAME: e\nTYPE: TSP\nDIMENSION: 0\nEDGE_WEIGHT_TYPE: EUC_2D\nEOF\n")
    with pytest.raises(SystemExit, match="nothing to draw"):
        visualize.visualize(inst, SolverConfig(record_tours=True), str(tmp_path))


@pytest.mark.parametrize("option", [["--start-node", "9"], ["--edge-weight-type", "NOPE_2D"]])
def test_cli_reports_bad_options_without_traceback(tmp_path, monkeypatch, capsys, option):
    path = tmp_path / "square.tsp"
    path.write_text(coord_text(SQUARE, name="square"))
    monkeypatch.setattr("sys.argv", ["run_experiments.py", str(path), *option])
    with pytest.raises(SystemExit) as exc:
        run_experiments.main()
    assert exc.value.code == 1
    assert capsys.readouterr().out.startswith("Error:")


def test_cli_solves_a_file(tmp_path, monkeypatch, capsys):
    path = tmp_path / "square.tsp"
    path.write_text(coord_text(SQUARE, name="square"))
    monkeypatch.setattr("sys.argv", ["run_experiments.py", str(path)])
    run_experiments.main()
    assert "square: length 40" in capsys.readouterr().out
