# =============================================================================
# tests/ - Test Suite
# =============================================================================
# - test_models.py / test_catalog_utils.py: domain models and helpers
# - test_authentication.py: session cookie and OAuth helpers
# - test_github_client.py: Contents API client against a fake GitHub
# - test_icons.py: favicon discovery and the batch icon run
# - test_*_api.py / test_pages.py: HTTP endpoints through TestClient
#
# Run tests with: pytest
# =============================================================================
