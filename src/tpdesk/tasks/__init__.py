"""Task list, filters, statistics and kanban board."""
