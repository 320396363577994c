"""Cross-cutting helpers: logging setup and log sanitizing."""
