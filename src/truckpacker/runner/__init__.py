"""Command-line runners for truckpacker."""
