from __future__ import annotations

from pathlib import Path
import os
import sys

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from facenorm.utils.log import silence_stderr


def test_silence_stderr_hides_c_level_writes_and_restores(capfd):
    os.write(2, b"before\n")
    with silence_stderr():
        os.write(2, b"cascade parse error\n")
        os.write(1, b"stdout stays\n")
    os.write(2, b"after\n")
    out, err = capfd.readouterr()
    assert err == "before\nafter\n"
    assert out == "stdout stays\n"
