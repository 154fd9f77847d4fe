"""Launch ItemLens from a source checkout."""

import sys
from pathlib import Path

# Add the project root to the path so the itemlens package imports without installing
sys.path.insert(0, str(Path(__file__).parent))

from itemlens.main import main

if __name__ == "__main__":
    sys.exit(main())
