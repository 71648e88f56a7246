from __future__ import annotations

import os

# Must be set before ecocharge.settings is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SHOPIFY_API_SECRET"] = "test-secret"
