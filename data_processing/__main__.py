import sys

from data_processing.cli import main

sys.exit(main())
