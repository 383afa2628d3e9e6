"""Pure scheduling logic: recurrence, overlap, series mutation, reminders and search."""
