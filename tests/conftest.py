from __future__ import annotations

import sys
from pathlib import Path

_TESTS = Path(__file__).resolve().parent
_SRC = (_TESTS.parent / "src").as_posix()
for _path in (_SRC, _TESTS.as_posix()):
    if _path not in sys.path:
        sys.path.insert(0, _path)
