import sys

from pg_healthcheck.cli import main

sys.exit(main())
