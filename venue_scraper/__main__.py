import sys

from venue_scraper.cli import main

sys.exit(main())
