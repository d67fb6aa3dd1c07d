"""Prediction Whale Tracker - Large-trade accumulation and analytics for prediction markets."""

__version__ = "0.1.0"
