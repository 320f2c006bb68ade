from __future__ import annotations

import json
from pathlib import Path

import dynaconn_py


def test_version_matches_version_json() -> None:
    version_file = Path(__file__).resolve().parents[2] / "src" / "dynaconn_py" / "version.json"
    data = json.loads(version_file.read_text(encoding="utf-8"))
    assert dynaconn_py.__repo_version__ == data["version"]
    if "-rc." in data["version"]:
        assert "-rc." not in dynaconn_py.__version__
        assert "rc" in dynaconn_py.__version__
    else:
        assert dynaconn_py.__version__ == data["version"]
