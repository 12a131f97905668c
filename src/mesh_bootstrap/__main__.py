"""Allow running as ``python -m mesh_bootstrap``."""

from .main import main

if __name__ == "__main__":
    main()
