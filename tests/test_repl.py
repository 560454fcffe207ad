import importlib.util
import sys
from pathlib import Path
import uuid
import pytest

def _load_repl_module():
    """Dynamically load the top-level sigil_repl.py as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "sigil_repl.py"
    mod_name = f"sigil_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod

def _feed(monkeypatch, repl, lines):
    it = iter(lines)

    def fake_read_line(prompt: str) -> str:
        return next(it)
    monkeypatch.setattr(repl, "read_line", fake_read_line)

def test_repl_exit_immediately(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, ["exit"])

    repl.main([])
    out = capsys.readouterr().out
    assert "SIGIL REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out

def test_repl_prints_values(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [
        '~l"HELLO"',
        "",
        '~w"a b"',
        "exit",
    ])

    repl.main([])
    out, err = capsys.readouterr()
    assert "'hello'" in out
    assert "#['a', 'b']" in out
    assert err == ""

def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, ['~nope"x"', '~l"unterminated', "exit"])

    repl.main([])
    out, err = capsys.readouterr()
    assert "SIGIL REPL v0.1" in out
    assert "UnknownTag: ~nope" in err
    assert "Error at col 3: SyntaxError" in err

def test_repl_lists_tags_as_yaml(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [":tags", "exit"])

    repl.main([])
    out = capsys.readouterr().out
    assert "- tag: l\n  flags: l\n" in out

def test_repl_eof_quits(monkeypatch, capsys):
    repl = _load_repl_module()

    def fake_read_line(prompt: str) -> str:
        raise EOFError
    monkeypatch.setattr(repl, "read_line", fake_read_line)

    repl.main([])
    out = capsys.readouterr().out
    assert "SIGIL REPL v0.1" in out
    assert "Exiting." in out

def test_one_shot_compile(capsys):
    repl = _load_repl_module()
    repl.main(['~l"ABC"l'])
    assert capsys.readouterr().out.strip() == "#['a', 'b', 'c']"

def test_one_shot_compile_error_exits_nonzero(capsys):
    repl = _load_repl_module()
    with pytest.raises(SystemExit) as exc:
        repl.main(['~zz"x"'])
    assert exc.value.code == 1
    assert "UnknownTag: ~zz" in capsys.readouterr().err
