from __future__ import annotations

import os
import tempfile

# routes builds its context at import time; keep it away from /data
_STATE = tempfile.mkdtemp(prefix="inspector-tests-")
os.environ.setdefault("DATA_ROOT", os.path.join(_STATE, "data"))
os.environ.setdefault("LOG_DIR", os.path.join(_STATE, "logs"))
