"""Booking and availability backend for a canine physiotherapy clinic."""
