import sys

from portal.app import main

sys.exit(main())
