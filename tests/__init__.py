"""Test package for the market alert bot.

This file modifies ``sys.path`` at import time so that the project
package (located under ``src``) can be imported without installing
into the environment.
"""

import sys
from pathlib import Path

src_path = Path(__file__).resolve().parents[1] / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))
