import pytest

from stackup import ui


def test_error_goes_to_stdout(capsys):
    ui.error("Container n8n is not running")
    captured = capsys.readouterr()
    assert "[✗]" in captured.out
    assert "Container n8n is not running" in captured.out
    assert captured.err == ""


def test_die_prints_and_exits(capsys):
    with pytest.raises(SystemExit) as exc:
        ui.die("Do not run this installer as root")
    assert exc.value.code == 1
    assert "Do not run this installer as root" in capsys.readouterr().out
