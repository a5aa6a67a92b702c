"""CLI configuration: database URL override and operator id."""

import os
from uuid import UUID

# Overrides the database URL from the settings file when set.
DB_URL = os.environ.get("BURNWISE_DB_URL")

# Actor recorded in audit rows for changes made from the CLI.
OPERATOR_ID = UUID(os.environ.get("BURNWISE_OPERATOR_ID", "00000000-0000-0000-0000-00000000c11a"))
