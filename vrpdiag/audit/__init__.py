"""Solution audits run before diagnostics."""
