import sys

from complaint_workflow.cli import main

sys.exit(main())
