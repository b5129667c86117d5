"""Portal engagement core: telemetry, classification, and XP award protocols."""
