import sys

from smilestree.cli import main

sys.exit(main())
