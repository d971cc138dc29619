import sys

from batteryhub.main import main

sys.exit(main())
