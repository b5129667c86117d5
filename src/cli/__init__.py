"""Admin command line for the portal engagement core."""
