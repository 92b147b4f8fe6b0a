"""Infrastructure: persistence backends (SQL, memory) and action capabilities."""
