"""Pure schedule evaluation."""
