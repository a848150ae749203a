import sys

from edgar_statements.cli import main

sys.exit(main())
