"""edgar-statements: normalized financial statements from SEC companyfacts data."""
