import sys

from udpreq.cli import main

sys.exit(main())
