"""
Tests for CLI entry point - import CSVs and run analyses in a temp workspace.
"""

import pytest
import subprocess
import json
import tempfile
import sys
from datetime import date, timedelta
from pathlib import Path

from analysis.analyze_crypto import main


CSV_HEADER = "SNo,Name,Symbol,Date,High,Low,Open,Close,Volume,Marketcap\n"


def _write_coin_csv(path: Path, name: str, symbol: str, days: int, base: float, market_cap: float):
    start = date(2020, 1, 1)
    lines = [CSV_HEADER]
    for i in range(days):
        close = base + i + (i % 3)
        day = (start + timedelta(days=i)).isoformat()
        lines.append(
            f"{i + 1},{name},{symbol},{day} 23:59:59,{close * 1.02},{close * 0.98},"
            f"{close},{close},1000.0,{market_cap}\n"
        )
    path.write_text("".join(lines))


@pytest.fixture
def temp_workspace():
    """Workspace with a raw CSV directory and an imported database."""
    with tempfile.TemporaryDirectory() as temp_dir:
        workspace = Path(temp_dir)

        raw_dir = workspace / 'raw'
        raw_dir.mkdir()
        _write_coin_csv(raw_dir / 'coin_Bitcoin.csv', 'Bitcoin', 'BTC', 250, 100.0, 700.0)
        _write_coin_csv(raw_dir / 'coin_Ethereum.csv', 'Ethereum', 'ETH', 250, 20.0, 300.0)

        db_path = workspace / 'crypto.db'
        exit_code = main(['--db-path', str(db_path), '--quiet', 'import', '--data-dir', str(raw_dir)])
        assert exit_code == 0

        yield workspace


class TestImportCommand:
    """Tests for the import subcommand."""

    def test_import_reports_files(self, tmp_path, capsys):
        raw_dir = tmp_path / 'raw'
        raw_dir.mkdir()
        _write_coin_csv(raw_dir / 'coin_Bitcoin.csv', 'Bitcoin', 'BTC', 5, 100.0, 700.0)

        exit_code = main(['--db-path', str(tmp_path / 'crypto.db'), 'import', '--data-dir', str(raw_dir)])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert 'coin_Bitcoin.csv: 5 rows (BITCOIN)' in out
        assert 'Processed 1 files: 1 imported, 0 failed' in out

    def test_import_missing_directory(self, tmp_path, capsys):
        exit_code = main(['--db-path', str(tmp_path / 'crypto.db'), 'import', '--data-dir', str(tmp_path / 'none')])

        assert exit_code == 1
        assert 'Data directory not found' in capsys.readouterr().err


class TestAnalysisCommands:
    """Tests for the analysis subcommands."""

    def test_list(self, temp_workspace, capsys):
        exit_code = main(['--db-path', str(temp_workspace / 'crypto.db'), 'list'])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert 'BITCOIN' in out
        assert 'ETHEREUM' in out

    def test_volatility_writes_json(self, temp_workspace):
        output_path = temp_workspace / 'volatility.json'

        exit_code = main([
            '--db-path', str(temp_workspace / 'crypto.db'), '--quiet',
            'volatility', '--days', '60', '--output', str(output_path)
        ])

        assert exit_code == 0
        with open(output_path) as f:
            data = json.load(f)
        assert data['crypto_count'] == 2
        assert data['period']['days'] == 60

    def test_predictions_summary(self, temp_workspace, capsys):
        output_path = temp_workspace / 'predictions.json'

        exit_code = main([
            '--db-path', str(temp_workspace / 'crypto.db'),
            'predictions', '1', '--output', str(output_path)
        ])

        assert exit_code == 0
        out = capsys.readouterr().out
        assert 'Analysis completed successfully' in out
        assert '7-Day Change' in out
        with open(output_path) as f:
            data = json.load(f)
        assert len(data['prediction']['predictions']) == 30

    def test_predictions_insufficient_window(self, temp_workspace, capsys):
        exit_code = main([
            '--db-path', str(temp_workspace / 'crypto.db'), '--quiet',
            'predictions', '1', '--days', '90',
            '--output', str(temp_workspace / 'p.json')
        ])

        assert exit_code == 1
        assert 'Insufficient data' in capsys.readouterr().err

    def test_dominance_default_output_dir(self, temp_workspace, monkeypatch):
        output_dir = temp_workspace / 'analysis'
        monkeypatch.setenv('CRYPTO_OUTPUT_DIR', str(output_dir))

        exit_code = main(['--db-path', str(temp_workspace / 'crypto.db'), '--quiet', 'dominance', '--days', '30'])

        assert exit_code == 0
        with open(output_dir / 'dominance.json') as f:
            data = json.load(f)
        assert data['stats']['current'] == pytest.approx(70.0)

    def test_seasonal_default_file_name(self, temp_workspace, monkeypatch):
        output_dir = temp_workspace / 'analysis'
        monkeypatch.setenv('CRYPTO_OUTPUT_DIR', str(output_dir))

        exit_code = main(['--db-path', str(temp_workspace / 'crypto.db'), '--quiet', 'seasonal', '2'])

        assert exit_code == 0
        assert (output_dir / 'seasonal_2.json').exists()

    def test_missing_database(self, tmp_path, capsys):
        exit_code = main(['--db-path', str(tmp_path / 'absent.db'), 'trends'])

        assert exit_code == 1
        assert 'Database not found' in capsys.readouterr().err

    def test_unknown_log_level_falls_back(self, temp_workspace, monkeypatch, capsys):
        """A mistyped LOG_LEVEL is reported and the command still runs."""
        monkeypatch.setenv('LOG_LEVEL', 'loud')

        exit_code = main(['--db-path', str(temp_workspace / 'crypto.db'), 'list'])

        assert exit_code == 0
        captured = capsys.readouterr()
        assert "Unknown LOG_LEVEL 'LOUD', using WARNING" in captured.err
        assert 'BITCOIN' in captured.out

    def test_invalid_ids(self, temp_workspace):
        with pytest.raises(SystemExit):
            main(['--db-path', str(temp_workspace / 'crypto.db'), 'correlations', '--ids', '1,abc'])


class TestScriptEntryPoint:
    """Tests running the script as a subprocess."""

    def test_help(self):
        project_root = Path(__file__).parent.parent.parent
        script_path = project_root / 'analysis' / 'analyze_crypto.py'

        result = subprocess.run(
            [sys.executable, str(script_path), '--help'],
            capture_output=True,
            text=True,
            cwd=project_root
        )

        assert result.returncode == 0
        assert 'Historical cryptocurrency analytics' in result.stdout

    def test_correlations_subprocess(self, temp_workspace):
        project_root = Path(__file__).parent.parent.parent
        script_path = project_root / 'analysis' / 'analyze_crypto.py'
        output_path = temp_workspace / 'correlations.json'

        result = subprocess.run([
            sys.executable, str(script_path),
            '--db-path', str(temp_workspace / 'crypto.db'), '--quiet',
            'correlations', '--ids', '1,2', '--output', str(output_path)
        ], capture_output=True, text=True, cwd=project_root)

        assert result.returncode == 0
        assert 'correlations analysis complete' in result.stdout
        with open(output_path) as f:
            data = json.load(f)
        assert data['crypto_count'] == 2
