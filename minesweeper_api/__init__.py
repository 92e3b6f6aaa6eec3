"""Minesweeper leaderboard API."""
