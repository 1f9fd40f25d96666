import sys

from scalar_git.cli import main


sys.exit(main())
