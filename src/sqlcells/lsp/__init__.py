"""Language server for SQL cell scripts."""
