"""Git-driven synchronisation of Gherkin feature files with a test-management service."""

__version__ = "1.0.0"
