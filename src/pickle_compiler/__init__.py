"""pickle-compiler: Gherkin feature files to JUnit test classes."""

__version__ = "0.1.0"
