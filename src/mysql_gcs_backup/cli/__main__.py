import sys

from mysql_gcs_backup.cli import main

sys.exit(main())
