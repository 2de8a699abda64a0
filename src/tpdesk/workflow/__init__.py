"""Project workflow steps and progress."""
