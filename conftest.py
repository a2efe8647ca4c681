import sys
from pathlib import Path

# Lets the tests import the flat `hyperblade` package from a checkout
sys.path.insert(0, str(Path(__file__).parent))
