import sys

from review_bot.main import main

sys.exit(main())
