# scripts/run.py
import pathlib
import sys

# run from a checkout without installing
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1] / "src"))

from licsync.app.cli import main

if __name__ == "__main__":
    sys.exit(main())
