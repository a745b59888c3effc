import sys

from travelsafe.server import main

sys.exit(main())
