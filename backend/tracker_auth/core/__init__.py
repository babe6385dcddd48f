"""Framework plumbing: configuration, extensions, logging, errors and security."""
