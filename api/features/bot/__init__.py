"""Bot feature: Teams activity handling for the timesheet bot."""
