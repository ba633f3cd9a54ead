"""
PTV GTFS Preparation Entry Point

Allows running the pipeline via:
    python -m src.prepare <input.zip> [args]
"""

from .orchestrator import main

if __name__ == "__main__":
    main()
