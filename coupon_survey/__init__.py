"""Coupon survey backend for the LINE mini-app."""
