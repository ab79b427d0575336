import sys

from floorlink.presentation.cli import main

if __name__ == "__main__":
    sys.exit(main())
