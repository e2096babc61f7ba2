"""Dota Keeper — personal goals and daily/weekly challenges from Dota 2 match history."""
