#!/usr/bin/env python
"""Start the HTTP interaction collector."""

import os
import sys
from pathlib import Path

# Change to script directory so relative paths work correctly
script_dir = Path(__file__).parent.resolve()
os.chdir(script_dir)

# Add src to path
src_path = script_dir / "src"
sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    if (script_dir / "config_http.yaml").exists():
        os.environ.setdefault("INTERACTION_SVC_CONFIG", str(script_dir / "config_http.yaml"))

    from interaction_svc.main import run
    run()
