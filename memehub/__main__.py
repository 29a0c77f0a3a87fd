import sys

from memehub.main import main

sys.exit(main())
