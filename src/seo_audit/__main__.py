import sys

from seo_audit.app import main

sys.exit(main())
