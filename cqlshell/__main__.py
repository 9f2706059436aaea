import sys

from cqlshell.main import main

if __name__ == "__main__":
    sys.exit(main())
