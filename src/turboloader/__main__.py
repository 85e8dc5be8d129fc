"""
TurboLoader CLI Entry Point

Allows running the package as a module: python -m turboloader
"""

from turboloader.cli import main

if __name__ == "__main__":
    main()
