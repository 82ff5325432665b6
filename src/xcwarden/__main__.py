"""Allow running as ``python -m xcwarden``."""
from xcwarden.cli import main

if __name__ == "__main__":
    main()
